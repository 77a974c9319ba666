"""流式中继核心模块。

一次请求的生命周期：

    OPEN -> STREAMING -> CLOSING_OK     （上游正常结束：落盘后发 [DONE]）
    OPEN/STREAMING    -> CLOSING_ERROR  （任何异常：发 [ERROR]，不落盘）

每个流恰好产生一个终止事件；调用方断开时（生成器被 close）
直接关闭上游连接，不落盘也不再产生事件。
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union
from uuid import uuid4

from chat_relay.domain.conversation import ConversationStore
from chat_relay.domain.exceptions import BusinessError, UpstreamRejection
from chat_relay.domain.models import GenerationRequest
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.prompts import build_prompt_text
from chat_relay.providers.base import GenerationClient
from chat_relay.relay.dialogue import close_turn, open_turn
from chat_relay.relay.sse import SseFrameDecoder, delta_event, done_event, error_event, extract_delta


class StreamState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    CLOSING_OK = "closing_ok"
    CLOSING_ERROR = "closing_error"


@dataclass
class StreamSession:
    """单次流式请求的私有状态，请求结束即丢弃。"""

    request: GenerationRequest
    decoder: SseFrameDecoder = field(default_factory=SseFrameDecoder)
    upstream: Optional[Iterator[bytes]] = None
    accumulated_text: str = ""
    deltas: int = 0
    state: StreamState = StreamState.OPEN
    started_at: float = field(default_factory=time.time)


class StreamRelay:
    def __init__(
        self,
        store: ConversationStore,
        client: GenerationClient,
        max_context_messages: Optional[int] = None,
    ):
        self._store = store
        self._client = client
        self._max_context_messages = max_context_messages

    def open(self, request: Union[GenerationRequest, Dict[str, Any]]) -> Iterator[str]:
        """校验请求并返回 SSE 事件迭代器。

        校验在返回迭代器之前同步完成：缺少 prompt/userId 时直接抛
        ClientInputError，此时还没有任何上游连接。
        """

        if not isinstance(request, GenerationRequest):
            request = GenerationRequest.from_payload(request)
        return self._relay(StreamSession(request=request))

    def _relay(self, session: StreamSession) -> Iterator[str]:
        req = session.request
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "user_id": req.user_id}
        try:
            record = open_turn(self._store, req)
            prompt_text = build_prompt_text(record, req.prompt, self._max_context_messages)
            self._log(logging.INFO, "Stream started", log_ctx, history_turns=len(record.history))

            session.upstream = self._client.stream_generate(prompt_text)
            session.state = StreamState.STREAMING
            for chunk in session.upstream:
                for event in self._forward(session, session.decoder.feed(chunk)):
                    yield event
            for event in self._forward(session, session.decoder.flush()):
                yield event
        except GeneratorExit:
            session.state = StreamState.CLOSING_ERROR
            self._log(logging.WARNING, "Client disconnected", log_ctx, deltas=session.deltas)
            raise
        except UpstreamRejection as e:
            session.state = StreamState.CLOSING_ERROR
            self._log(
                logging.ERROR,
                "Upstream rejected stream",
                log_ctx,
                upstream_status=e.extra.get("upstream_status"),
                error=e.message,
            )
            yield error_event(e.message)
            return
        except BusinessError as e:
            session.state = StreamState.CLOSING_ERROR
            self._log(logging.ERROR, "Stream failed", log_ctx, code=e.code, error=e.message, deltas=session.deltas)
            yield error_event(e.message)
            return
        except Exception as e:
            session.state = StreamState.CLOSING_ERROR
            logger.error("Stream server error", exc_info=True, extra={"extra": dict(log_ctx, error=str(e))})
            yield error_event(str(e) or type(e).__name__)
            return
        finally:
            self._close_upstream(session)

        session.state = StreamState.CLOSING_OK
        close_turn(self._store, record, session.accumulated_text)
        self._log(
            logging.INFO,
            "Stream completed",
            log_ctx,
            deltas=session.deltas,
            chars=len(session.accumulated_text),
            frames=session.decoder.frames,
            malformed_frames=session.decoder.malformed_frames,
            elapsed_seconds=round(time.time() - session.started_at, 2),
        )
        yield done_event()

    @staticmethod
    def _forward(session: StreamSession, frames: List[Any]) -> List[str]:
        events = []
        for frame in frames:
            text = extract_delta(frame)
            if text is None:
                continue
            session.accumulated_text += text
            session.deltas += 1
            events.append(delta_event(text))
        return events

    @staticmethod
    def _close_upstream(session: StreamSession) -> None:
        upstream = session.upstream
        if upstream is not None and hasattr(upstream, "close"):
            upstream.close()
        session.upstream = None

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
