"""Structured JSON logging with request context fields."""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from avahanaa.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
code_id_ctx: ContextVar[str] = ContextVar("code_id", default="")
owner_id_ctx: ContextVar[str] = ContextVar("owner_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.code_id = code_id_ctx.get()
        record.owner_id = owner_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per service process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(code_id)s %(owner_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


def safe_dumps(value: Any, max_string_length: int = 500, pretty: bool = False) -> str:
    """Serialize an untrusted payload for logs.

    Long strings are truncated and circular references replaced so a hostile
    request body can never break or flood the log line.
    """

    def _clean(item: Any, seen: set[int]) -> Any:
        if isinstance(item, str):
            return item[:max_string_length] + "…" if len(item) > max_string_length else item
        if isinstance(item, (dict, list, tuple)):
            if id(item) in seen:
                return "[Circular]"
            seen = seen | {id(item)}
            if isinstance(item, dict):
                return {str(key): _clean(val, seen) for key, val in item.items()}
            return [_clean(val, seen) for val in item]
        return item

    try:
        return json.dumps(_clean(value, set()), indent=2 if pretty else None, default=str)
    except (TypeError, ValueError):
        return "[Unserializable payload]"


logger = logging.getLogger("avahanaa")
