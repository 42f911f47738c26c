"""
Codeact Structured Logging

All codeact modules log through stdlib loggers under the ``codeact``
namespace. Execution context travels on the record, either as named
attributes (``function_name``, ``tool_name``, ``error_kind``, ...) or as
an ``_extra`` dict, and CodeactFormatter flattens both into one payload.

Usage:
    from codeact.logging import get_logger

    logger = get_logger("codeact.executor")
    logger.info("Function executed", extra={"function_name": "add", "duration_ms": 3.1})

Loggers in use:
    codeact.executor   one record per executed function
    codeact.sandbox    guest stdout (INFO) and stderr (WARNING)
    codeact.bridge     tool calls made by guest code
    codeact.guest      messages guest code sends through ``logger``
    codeact.schema     return-schema learning
    codeact.tools      registration and bindings

For production, configure with JSON output:
    from codeact.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

# Record attributes promoted into the structured payload
CONTEXT_FIELDS = (
    "function_name",
    "tool_name",
    "language",
    "success",
    "error_kind",
    "duration_ms",
    "sample_count",
)

_HEADER_KEYS = ("timestamp", "level", "logger", "message")


def record_payload(record: logging.LogRecord, exception_text: str | None = None) -> dict[str, Any]:
    """Flatten a record into the structured payload both output modes render."""
    payload: dict[str, Any] = {
        "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, getattr(record, key))
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    )

    extra = getattr(record, "_extra", None)
    if isinstance(extra, dict):
        payload.update(extra)

    if exception_text:
        payload["exception"] = exception_text
    return payload


class CodeactFormatter(logging.Formatter):
    """Renders codeact records as a text line or a JSON object."""

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        exception_text = self.formatException(record.exc_info) if record.exc_info else None
        payload = record_payload(record, exception_text)
        if self._json_output:
            return json.dumps(payload, default=str)
        return _text_line(payload)


def _text_line(payload: dict[str, Any]) -> str:
    line = f"[{payload['timestamp']}] {payload['level']:8s} {payload['logger']}: {payload['message']}"

    context = " ".join(
        f"{key}={value}"
        for key, value in payload.items()
        if key not in _HEADER_KEYS and key != "exception"
    )
    if context:
        line += " | " + context
    if "exception" in payload:
        line += "\n" + payload["exception"]
    return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Configure codeact logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON format (for production/observability).
        stream: Where records go; the host's stderr when omitted.

    Returns:
        The handler now attached to the ``codeact`` logger.
    """
    if stream is None:
        # sys.stderr may be the sandbox's per-thread router; log to what it wraps
        stream = getattr(sys.stderr, "host_stream", sys.stderr)

    root_logger = logging.getLogger("codeact")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream)
    handler.setFormatter(CodeactFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False
    return handler


def get_logger(name: str = "codeact") -> logging.Logger:
    """Get a codeact logger, usually named after the module area."""
    return logging.getLogger(name)


configure_logging()
