"""Structured logging configuration.

JSON-formatted records with the pipeline's run id and stage fields, so a
single document can be followed through segmentation, extraction, fusion
and correction in any log aggregator.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from orderfusion.core.settings import get_settings

EXTRA_FIELDS = (
    "run_id",
    "stage",
    "strategy",
    "error_code",
    "duration_ms",
    "variant",
    "item_index",
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs logs as JSON with standard fields plus whitelisted extra context
    provided via the 'extra' parameter in logger calls.

    Example:
        >>> logger.info("Stage done", extra={"run_id": "abc", "stage": "fusion"})
        # Output: {"timestamp": "2026-01-05T17:52:00Z", "level": "INFO",
        #          "message": "Stage done", "run_id": "abc", "stage": "fusion"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None)
            .isoformat()
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_structured_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            LOG_LEVEL from the settings when omitted
        json_format: Use JSON formatter (True) or plain text (False);
            LOG_JSON from the settings when omitted
    """
    settings = get_settings()
    level = level or settings.LOG_LEVEL
    json_format = settings.LOG_JSON if json_format is None else json_format

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))
