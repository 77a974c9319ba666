"""提示词相关工具。

- load_system_prompt: 从 prompts/<locale> 目录读取 system prompt 文本，
  作为新会话记忆的第一条 system 轮。
- build_prompt_text: 把会话历史拼接为发给模型的单段文本。
- strip_disclaimers: 去掉回复中 "as an AI" 之类的自我声明。
"""

import re
from pathlib import Path
from typing import List, Optional

from chat_relay.domain.conversation import ConversationRecord, Turn
from chat_relay.prompts.language import detect_language, language_instruction

PROMPTS_DIR = Path(__file__).resolve().parent

_DISCLAIMER_RE = re.compile(r"as an ai|language model", re.IGNORECASE)


def load_system_prompt(persona: str = "codegen", locale: str = "en") -> str:
    """根据人设和语言加载系统提示词文本。"""

    fname = PROMPTS_DIR / locale / f"{persona}_system.md"
    return fname.read_text(encoding="utf-8")


def window_history(history: List[Turn], max_turns: Optional[int]) -> List[Turn]:
    """保留开头的 system 轮以及最近 max_turns 轮。"""

    if not max_turns:
        return list(history)
    if history and history[0].role == "system":
        head, rest = history[:1], history[1:]
    else:
        head, rest = [], history
    return head + rest[-max_turns:]


def build_prompt_text(record: ConversationRecord, prompt: str, max_turns: Optional[int] = None) -> str:
    """每轮一行（"User: ..." / "Assistant: ..."），末尾附加按本轮输入 prompt 选出的语言指令。"""

    turns = window_history(record.history, max_turns)
    lines = "\n".join(
        f"{'User' if t.role == 'user' else 'Assistant'}: {t.content}" for t in turns
    )
    instruction = language_instruction(prompt)
    return f"\n{lines}\n\nSystem instruction: {instruction}\n"


def strip_disclaimers(text: str) -> str:
    # 删除后可能拼出新的匹配，反复替换直到不再变化
    while True:
        cleaned = _DISCLAIMER_RE.sub("", text)
        if cleaned == text:
            return cleaned.strip()
        text = cleaned


__all__ = [
    "PROMPTS_DIR",
    "build_prompt_text",
    "detect_language",
    "language_instruction",
    "load_system_prompt",
    "strip_disclaimers",
    "window_history",
]
