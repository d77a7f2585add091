"""
Structured Logging Configuration.

Supports two modes:
- text: Human-readable lines prefixed with the generation run id
- json: One JSON object per line for log aggregation

Mode and level come from ``LOG_FORMAT`` / ``LOG_LEVEL`` (see ``Settings``).
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from app_generator.core.tracing import TracingContext

TRACING_FIELDS = ("correlation_id", "run_id", "app_name", "build_id")
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [run=%(run_id)s app=%(app_name)s] %(message)s"


class TracingFilter(logging.Filter):
    """Copies the current ``TracingContext`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = TracingContext.get()
        for field in TRACING_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, ctx.get(field, "") or "-")
        return True


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs JSON strings with tracing context.

    Includes correlation_id, run_id, app_name and build_id so a whole
    generation run, or the polling of one build, can be filtered out of
    aggregated logs.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = TracingContext.get()

        log_record: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
        }
        log_record.update({field: ctx.get(field, "") for field in TRACING_FIELDS})

        if hasattr(record, "event"):
            log_record["event"] = record.event

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Install the stdout handler on the root logger once; later calls are no-ops."""
    from app_generator.config import settings

    root_logger = logging.getLogger()

    # Avoid adding multiple handlers
    if root_logger.handlers:
        return

    level_name = (level or settings.LOG_LEVEL).upper()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TracingFilter())

    if (log_format or settings.LOG_FORMAT).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger.addHandler(handler)

    # Set lower level for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
