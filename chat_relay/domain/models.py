"""统一的请求与结果数据模型。

- GenerationRequest: 调用方发来的一次生成请求（已校验）。
- GenerationResult: Provider 非流式调用解析后的统一结果。
- WeatherReport: 天气查询结果的精简视图。

Provider 适配器只依赖这些模型，负责在各家 API JSON 与模型之间做转换。
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Literal, Optional

from chat_relay.domain.exceptions import ClientInputError


# 会话消息角色
Role = Literal["system", "user", "assistant"]

MISSING_PROMPT_MESSAGE = "Missing prompt or userId."


@dataclass
class GenerationRequest:
    """一次生成请求。

    - prompt: 用户本轮输入。
    - user_id: 会话记忆的主键。
    - project: 可选的项目标签，存在时覆盖记录中的 last_project。
    """

    prompt: str
    user_id: str
    project: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GenerationRequest":
        """从请求 JSON 构造；prompt 或 userId 缺失/为空时抛 ClientInputError。"""

        prompt = payload.get("prompt")
        user_id = payload.get("userId")
        if not isinstance(prompt, str) or not prompt or not isinstance(user_id, str) or not user_id:
            raise ClientInputError(code="MISSING_FIELDS", message=MISSING_PROMPT_MESSAGE)
        project = payload.get("project")
        if not isinstance(project, str) or not project:
            project = None
        return cls(prompt=prompt, user_id=user_id, project=project)


@dataclass
class GenerationResult:
    """一次非流式生成的结果。

    - text: 所有文本 part 的拼接。
    - image: 生成图片时为 data URI（``data:<mime>;base64,...``），否则为 None。
    - raw: 原始响应 JSON，用于调试。
    """

    provider: str
    model: str
    text: str
    image: Optional[str] = None
    finish_reason: Optional[str] = None
    raw: Optional[dict] = None


@dataclass
class WeatherReport:
    location: str
    condition: str
    temp: float
    feels_like: float
    humidity: int
    wind_speed: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
