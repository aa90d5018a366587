"""Logging configuration and the appointment audit trail."""

import logging
import sys
from typing import Any

from dentbook.core.config import settings

_EXTRA_FIELDS = ("request_id", "appointment_id", "location_id", "action")


class StructuredFormatter(logging.Formatter):
    """Render records as ``key=value`` pairs for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def setup_logging() -> None:
    """Configure the root logger for the current environment."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if settings.is_dev:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    else:
        console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class AuditLogger:
    """Audit trail for appointment lifecycle events.

    Confirmation tokens are capabilities; callers pass
    ``token_fingerprint(token)`` in metadata, never the token itself.
    """

    def __init__(self) -> None:
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        appointment_id: str,
        actor_type: str = "patient",
        actor_id: str = "anonymous",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log an audit event against an appointment."""
        self.logger.info(
            f"AUDIT: action={action} actor={actor_type}:{actor_id} "
            f"entity=appointment:{appointment_id} metadata={metadata or {}}",
            extra={"action": action, "appointment_id": appointment_id},
        )


audit_logger = AuditLogger()
