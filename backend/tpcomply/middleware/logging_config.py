"""Structured JSON logging, tagged with the request scope."""

import json
import logging
from datetime import datetime, timezone

from tpcomply.middleware.request_context import current_scope


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Tenant fields come from the record's `extra=` when given, otherwise from
    the caller bound to the current request. Records outside a request carry
    no request_id, firm_id or user_id.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        scope = current_scope()
        if scope is not None:
            entry["request_id"] = scope.request_id
            entry["firm_id"] = getattr(record, "firm_id", None) or scope.firm_id
            entry["user_id"] = getattr(record, "user_id", None) or scope.user_id
        else:
            for name in ("firm_id", "user_id"):
                if getattr(record, name, None):
                    entry[name] = getattr(record, name)

        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_json_logging(log_level: str = "INFO"):
    """Send every logger through a single JSON stream handler on the root."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
