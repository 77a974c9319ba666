"""单轮对话在会话记忆上的读改写。

流式中继与非流式生成共用：请求开始时 open_turn 追加 user 轮，
成功结束时 close_turn 追加 assistant 轮并落盘。失败路径不调用 close_turn，
记录不会被写回。
"""

from chat_relay.domain.conversation import ConversationRecord, ConversationStore
from chat_relay.domain.exceptions import StorageIOError
from chat_relay.domain.models import GenerationRequest
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.prompts import strip_disclaimers


def open_turn(store: ConversationStore, req: GenerationRequest) -> ConversationRecord:
    record = store.get(req.user_id)
    if req.project:
        record.last_project = req.project
    record.last_task = req.prompt
    record.append("user", req.prompt)
    return record


def close_turn(store: ConversationStore, record: ConversationRecord, reply: str) -> str:
    """清洗回复、追加 assistant 轮并持久化，返回清洗后的文本。

    写盘失败只记录日志：此时回复已经交付给调用方。
    """

    clean = strip_disclaimers(reply)
    record.append("assistant", clean)
    try:
        store.put(record.user_id, record)
    except StorageIOError as e:
        logger.error(
            "Failed to save memory",
            extra={"extra": {"user_id": record.user_id, "code": e.code, "error": e.message}},
        )
    return clean
