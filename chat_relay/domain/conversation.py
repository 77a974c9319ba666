from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .models import Role


@dataclass
class Turn:
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ConversationRecord:
    """单个用户的会话记忆。

    history 第一条（若存在）总是创建时写入的 system 轮，之后只追加。
    落盘格式沿用 ``{"userId", "lastProject", "lastTask", "conversation"}``。
    """

    user_id: str
    last_project: Optional[str] = None
    last_task: Optional[str] = None
    history: List[Turn] = field(default_factory=list)

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self.history.append(turn)
        return turn

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "lastProject": self.last_project,
            "lastTask": self.last_task,
            "conversation": [t.to_dict() for t in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationRecord":
        return cls(
            user_id=data["userId"],
            last_project=data.get("lastProject"),
            last_task=data.get("lastTask"),
            history=[
                Turn(role=t["role"], content=t.get("content") or "")
                for t in data.get("conversation") or []
            ],
        )


def new_record(user_id: str, system_prompt: str) -> ConversationRecord:
    """默认模板：只包含一条 system 轮。"""

    record = ConversationRecord(user_id=user_id)
    record.append("system", system_prompt)
    return record


class ConversationStore(Protocol):
    def get(self, user_id: str) -> ConversationRecord:
        ...

    def put(self, user_id: str, record: ConversationRecord) -> None:
        ...
