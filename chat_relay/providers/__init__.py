"""上游服务集成层。

该包下的模块负责：
- 定义生成类 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现：gemini_client（文本/流式/图片）、
  serpapi_client（搜索/新闻）、weather_client（天气/IP 定位）。
"""

from typing import Optional

from chat_relay.config.settings import settings
from chat_relay.domain.exceptions import ValidationError
from chat_relay.providers.base import GenerationClient
from chat_relay.providers.gemini_client import GeminiClient
from chat_relay.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> GenerationClient:
    """根据名称创建生成 Provider 实例，默认取配置中的 provider。"""

    provider_name = name or getattr(settings, "default_provider", "gemini")
    try:
        cfg = get_provider_config(provider_name)
    except KeyError as e:
        raise ValidationError(code="UNKNOWN_PROVIDER", message=str(e), http_status=500)
    if cfg.name == "gemini":
        return GeminiClient(settings)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=cfg.name, http_status=500)
