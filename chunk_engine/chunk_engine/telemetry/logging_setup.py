"""Logging setup for hosts that embed the engine.

The engine itself only ever calls ``logging.getLogger(__name__)``; nothing
is configured at import time.  Hosts (the CLI, an editor bridge) call
:func:`configure_logging` once.  With ``structured_logging`` enabled every
record is emitted as one JSON line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "WARNING",
        "logger": "chunk_engine.parser.walker",
        "message": "nesting depth limit 64 reached",
        "chunk": {"batch": 0, "line": 12},    // when passed via extra=
        "exc_info": "Traceback ..."           // only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from chunk_engine.config import EngineSettings, get_settings

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Statement context attached by callers via ``extra={"chunk": ...}``.
        chunk_context = getattr(record, "chunk", None)
        if chunk_context is not None:
            payload["chunk"] = chunk_context

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: EngineSettings | None = None) -> logging.Logger:
    """Attach a single stream handler to the ``chunk_engine`` logger.

    Calling this again replaces the handler installed by the previous call,
    so hosts can reconfigure after changing settings.
    """
    settings = settings or get_settings()
    package_logger = logging.getLogger("chunk_engine")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_chunk_engine_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._chunk_engine_handler = True  # type: ignore[attr-defined]
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    package_logger.addHandler(handler)
    package_logger.setLevel(settings.log_level)
    return package_logger
