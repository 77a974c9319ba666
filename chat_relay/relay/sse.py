"""SSE 帧解码与事件编码。

上游（Gemini ``alt=sse``）按行发送 ``data: {json}``，字节块边界与行边界无关，
因此解码器在两次 feed 之间保留未完成的行（以及未完成的 UTF-8 字节）。
"""

import codecs
import json
from typing import Any, List, Optional

from chat_relay.domain.exceptions import FrameDecodeError
from chat_relay.infrastructure.logging.logger import logger

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
ERROR_MARKER = "[ERROR]"


class SseFrameDecoder:
    """增量解析 ``data: `` 帧。

    - feed(chunk): 追加一块原始字节，返回本次凑齐的所有帧（已 JSON 解析）。
    - flush(): 上游结束时处理缓冲区中最后一行（可能没有换行符）。

    非 ``data: `` 开头的行（空行、event:/id: 字段、注释）直接丢弃；
    单帧 JSON 解析失败只计入 malformed_frames，不中断整个流。
    """

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.frames = 0
        self.malformed_frames = 0

    def feed(self, chunk: bytes) -> List[Any]:
        self._buffer += self._text.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._parse_lines(lines)

    def flush(self) -> List[Any]:
        tail = self._buffer + self._text.decode(b"", final=True)
        self._buffer = ""
        return self._parse_lines([tail]) if tail else []

    @property
    def pending(self) -> str:
        return self._buffer

    def _parse_lines(self, lines: List[str]) -> List[Any]:
        frames = []
        for line in lines:
            try:
                frame = self._parse_line(line)
            except FrameDecodeError as e:
                self.malformed_frames += 1
                logger.debug("Skipped malformed frame", extra={"extra": {"error": e.message}})
                continue
            if frame is not None:
                self.frames += 1
                frames.append(frame)
        return frames

    @staticmethod
    def _parse_line(line: str) -> Optional[Any]:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        data_str = line[len(DATA_PREFIX):]
        if data_str.strip() == DONE_MARKER:
            return None
        try:
            return json.loads(data_str)
        except json.JSONDecodeError as e:
            raise FrameDecodeError(code="FRAME_DECODE_ERROR", message=str(e))


def extract_delta(frame: Any) -> Optional[str]:
    """取 candidates[0].content.parts[0].text；结构不符或为空时返回 None。"""

    try:
        text = frame["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(text, str) and text:
        return text
    return None


def format_event(data: str) -> str:
    """编码为一个 SSE 事件；多行内容拆成多条 ``data:`` 行。"""

    return "".join(f"{DATA_PREFIX}{line}\n" for line in data.split("\n")) + "\n"


def delta_event(text: str) -> str:
    return format_event(json.dumps(text, ensure_ascii=False))


def done_event() -> str:
    return format_event(DONE_MARKER)


def error_event(message: str) -> str:
    return format_event(f"{ERROR_MARKER} {message}")
