"""Structured logging infrastructure for the API layer.

Provides JSON-formatted logging for production and human-readable
logging for development, plus a GenerationLogger helper for smart
generation events.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from ..core.types import GenerationResult

# Extra fields copied from log records into JSON output
STRUCTURED_FIELDS = (
    "request_id",
    "character_id",
    "stage",
    "attempt",
    "duration",
    "error_type",
    "reference_id",
    "status",
    "source",
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        for name in STRUCTURED_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(json_format: bool = True, level: int = logging.INFO) -> None:
    """Configure structured logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    root_logger.addHandler(handler)


class GenerationLogger:
    """Logger for smart generation events with structured fields."""

    def __init__(self):
        self.logger = logging.getLogger("smart_generation")

    def generation_started(self, request_id: str, character_id: str, source: str) -> None:
        self.logger.info(
            "Smart generation started",
            extra={
                "request_id": request_id,
                "character_id": character_id,
                "stage": "started",
                "source": source,
            },
        )

    def attempts_logged(self, result: GenerationResult, character_id: str) -> None:
        for attempt in result.attempts:
            self.logger.info(
                f"Attempt {attempt.attempt_number} {attempt.status.value}",
                extra={
                    "request_id": result.request_id,
                    "character_id": character_id,
                    "stage": "attempt",
                    "attempt": attempt.attempt_number,
                    "reference_id": attempt.reference_id,
                    "status": attempt.status.value,
                    "duration": round(attempt.elapsed_ms / 1000, 2),
                },
            )

    def generation_finished(self, result: GenerationResult, character_id: str) -> None:
        extra = {
            "request_id": result.request_id,
            "character_id": character_id,
            "stage": "finished",
            "status": result.status.value,
            "duration": round(result.total_elapsed_ms / 1000, 2),
        }
        if result.success:
            self.logger.info("Smart generation accepted a candidate", extra=extra)
        else:
            reason = result.failure_reasons[-1] if result.failure_reasons else "unknown"
            self.logger.warning(f"Smart generation {result.status.value}: {reason}", extra=extra)

    def generation_failed(self, request_id: str, character_id: str, error: Exception, stage: Optional[str] = None) -> None:
        extra = {
            "request_id": request_id,
            "character_id": character_id,
            "stage": stage or "failed",
            "error_type": type(error).__name__,
        }
        self.logger.error(f"Smart generation failed: {error}", extra=extra, exc_info=True)


# Global generation logger instance
generation_logger = GenerationLogger()
