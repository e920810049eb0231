from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

from google.cloud import logging as cloud_logging

TRACE_HEADER = "X-Cloud-Trace-Context"

# Request-scoped context attached to every record
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_span_id: ContextVar[str | None] = ContextVar("span_id", default=None)
_owner: ContextVar[str | None] = ContextVar("owner", default=None)

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


def parse_trace_header(header: str | None) -> tuple[str | None, str | None]:
    """Split ``TRACE_ID/SPAN_ID;o=OPTIONS`` into trace and span ids."""
    if not header:
        return None, None
    trace_id, _, rest = header.partition("/")
    span_id = rest.split(";", 1)[0]
    return trace_id or None, span_id or None


@contextmanager
def log_context(
    *, trace_id: str | None = None, span_id: str | None = None, owner: str | None = None
) -> Iterator[None]:
    tokens = [
        (_trace_id, _trace_id.set(trace_id)),
        (_span_id, _span_id.set(span_id)),
        (_owner, _owner.set(owner)),
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def get_trace_id() -> str | None:
    return _trace_id.get()


class StructuredFormatter(logging.Formatter):
    """JSON lines in the shape Cloud Logging's agent understands.

    With a project id the trace is written as a full resource name so the
    entries group under their request in the console.
    """

    def __init__(self, project_id: str | None = None) -> None:
        super().__init__()
        self.project_id = project_id

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
        }

        trace_id = _trace_id.get()
        if trace_id:
            log_obj["logging.googleapis.com/trace"] = (
                f"projects/{self.project_id}/traces/{trace_id}" if self.project_id else trace_id
            )
        span_id = _span_id.get()
        if span_id:
            log_obj["logging.googleapis.com/spanId"] = span_id
        owner = _owner.get()
        if owner:
            log_obj["owner"] = owner

        log_obj.update(record_extras(record))

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def setup_logging(
    *,
    environment: str = "dev",
    project_id: str | None = None,
    use_cloud_logging: bool = True,
) -> None:
    """Configure logging for the API service.

    Outside dev with a project the Cloud Logging client takes over the root
    logger; otherwise records go to stdout as JSON lines.
    """
    log_level = logging.DEBUG if environment == "dev" else logging.INFO

    if use_cloud_logging and project_id and environment != "dev":
        client = cloud_logging.Client(project=project_id)
        client.setup_logging(log_level=log_level)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter(project_id))
        logging.basicConfig(level=log_level, handlers=[handler], force=True)

    for noisy in ("google", "urllib3", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


__all__ = [
    "StructuredFormatter",
    "TRACE_HEADER",
    "get_trace_id",
    "log_context",
    "parse_trace_header",
    "record_extras",
    "setup_logging",
]
