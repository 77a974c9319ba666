import hashlib
import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote
from uuid import uuid4

from chat_relay.config.settings import settings
from chat_relay.domain.conversation import ConversationRecord, ConversationStore, new_record
from chat_relay.domain.exceptions import StorageIOError
from chat_relay.infrastructure.logging.logger import logger
from chat_relay.prompts import load_system_prompt

# 常见文件系统单个文件名上限为 255 字节
MAX_QUOTED_ID_LEN = 200


class JsonConversationStore(ConversationStore):
    """每个用户一个 JSON 文件的会话记忆。

    只保证单进程、尽力而为的持久化；同一用户的并发请求按后写者为准。
    """

    def __init__(self, root: str | Path | None = None, system_prompt: Optional[str] = None):
        self._root = Path(root or settings.memory_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._system_prompt = system_prompt if system_prompt is not None else load_system_prompt()

    def get(self, user_id: str) -> ConversationRecord:
        """读取会话；文件缺失或不可读时返回新记录，从不抛错。"""
        path = self._path_for(user_id)
        try:
            if path.exists():
                data = json.loads(path.read_text(encoding="utf-8"))
                return ConversationRecord.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(
                "Failed to load memory",
                extra={"extra": {"user_id": user_id, "error": str(e)}},
            )
        return new_record(user_id, self._system_prompt)

    def put(self, user_id: str, record: ConversationRecord) -> None:
        path = self._path_for(user_id)
        tmp_path = self._root / f"{path.name}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(json.dumps(record.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageIOError(code="STORE_WRITE_ERROR", message=str(e), user_id=user_id)

    def _path_for(self, user_id: str) -> Path:
        # userId 是不透明字符串，转义后才能安全地作为文件名；过长时改用哈希
        quoted = quote(user_id, safe="")
        if len(quoted) > MAX_QUOTED_ID_LEN:
            quoted = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self._root / f"memory_{quoted}.json"
