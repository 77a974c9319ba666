"""流式中继：上游 SSE 帧解码、增量转发与会话记忆收尾。"""

from chat_relay.relay.stream_relay import StreamRelay, StreamSession, StreamState

__all__ = ["StreamRelay", "StreamSession", "StreamState"]
