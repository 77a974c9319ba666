"""JSON Lines 日志，写入 <log_dir>/relay.log。

结构化字段通过 ``extra={"extra": {...}}`` 传入并平铺到每行日志里。
流式转发常用字段：

- trace_id / user_id：一次 /api/generate 请求的关联键
- deltas / chars / malformed_frames：流结束时的计数
- elapsed_seconds：从开流到终止事件的耗时
- upstream_status / code / error：失败原因

log_redact_content=True 时 msg 与 CONTENT_FIELDS 中的字段截断到 64 字符，
避免把用户原文写进日志。
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from chat_relay.config.settings import settings

REDACT_LIMIT = 64
CONTENT_FIELDS = frozenset({"prompt", "error", "details", "query"})


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return value[:REDACT_LIMIT]
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if settings.log_redact_content:
            payload["msg"] = _redact(msg or "")
            for key in CONTENT_FIELDS & payload.keys():
                payload[key] = _redact(payload[key])
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger() -> logging.Logger:
    logger = logging.getLogger("chat_relay")
    level = logging.getLevelName(str(settings.log_level).upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    # uvicorn --reload 等场景下模块可能被重复导入
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "relay.log", encoding="utf-8")
    fh.setFormatter(JsonFormatter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
