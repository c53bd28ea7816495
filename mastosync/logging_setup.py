from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_EXTRA_KEYS: tuple[str, ...] = (
    "chat_id",
    "message_id",
    "user_id",
    "group_id",
    "action",
    "state",
    "attempt",
    "attachment",
    "size",
    "domain",
    "status",
    "reason",
    "worker",
    "update_id",
    "queue_size",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        for extra_key in _EXTRA_KEYS:
            value = getattr(record, extra_key, None)
            if value is not None:
                payload[extra_key] = value
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
