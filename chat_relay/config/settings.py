"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
优先级：构造参数 > 环境变量 > .env > config.yaml > secrets 目录。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_RELAY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class RelaySettings(BaseSettings):
    """配置设置。"""

    # ---- 生成模型 ----
    default_provider: str = Field(default="gemini", description="默认 Provider 名称")
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )

    # ---- 搜索 / 新闻 / 天气 ----
    serpapi_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("serpapi_key", "serp_api_key"),
        description="SerpAPI 密钥（兼容 SERP_API_KEY）",
    )
    serpapi_base_url: str = Field(default="https://serpapi.com/search.json")
    openweather_api_key: Optional[str] = Field(default=None, description="OpenWeatherMap 密钥")
    openweather_base_url: str = Field(default="https://api.openweathermap.org/data/2.5")
    geoip_base_url: str = Field(default="https://ipapi.co", description="IP 定位服务")
    search_location: str = Field(default="Nairobi, Kenya", description="搜索地域偏好")
    search_language: str = Field(default="en", description="SerpAPI hl 参数")
    search_country: str = Field(default="ke", description="SerpAPI gl 参数")

    # ---- HTTP ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    stream_read_timeout: float = Field(
        default=60.0,
        ge=1.0,
        description="流式响应两次读之间的最长等待（秒）",
    )

    # ---- 存储与日志 ----
    memory_dir: str = Field(default="/tmp/memory", description="用户会话记忆目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别，如 DEBUG / INFO / WARNING")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    max_context_messages: int = Field(
        default=20,
        ge=1,
        le=200,
        description="发送给模型的最大历史轮数（不含 system 轮）",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key", "serpapi_key", "openweather_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = RelaySettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = RelaySettings
