from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from advisor_crm.context import get_correlation_id
from advisor_crm.core.config import get_settings


MAX_FIELD_LENGTH = 500

# Only these ``extra`` keys are emitted; anything else (passwords, payloads) is dropped.
LOGGED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "resource",
        "operation",
        "entity_id",
        "stage",
        "outcome",
        "username",
        "event_name",
        "error",
    }
)

_default_record_factory = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _default_record_factory(*args, **kwargs)
    record.correlation_id = get_correlation_id()
    return record


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
        return value[:MAX_FIELD_LENGTH]
    return value


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, correlation id and fields."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {key: _clip(value) for key, value in record.__dict__.items() if key in LOGGED_FIELDS}
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging() -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_advisor_crm_configured", False):
        return

    level = logging.getLevelName(get_settings().log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    logging.setLogRecordFactory(_record_factory)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    root_logger._advisor_crm_configured = True  # type: ignore[attr-defined]
