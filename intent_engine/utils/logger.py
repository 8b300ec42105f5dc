import json
import logging
import sys
from typing import Dict, Any, Optional
import uuid

from intent_engine.config import get_settings

# Attributes every LogRecord carries; anything else was passed through `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class CustomJsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as a JSON string.

        Args:
            record: The log record to format

        Returns:
            str: JSON formatted log string
        """
        settings = get_settings()
        log_object = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "service": settings.SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
        }

        # Add extra attributes
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_object[key] = value

        # Add exception info if available
        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def configure_logging() -> None:
    """Configure global logging settings."""
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if settings.ENABLE_STRUCTURED_LOGGING:
        handler.setFormatter(CustomJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    logging.basicConfig(
        level=log_level,
        handlers=[handler],
        force=True
    )

    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Name for the logger

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that tags every record with a training run ID and other context.
    """

    def __init__(self, logger: logging.Logger, run_id: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        """
        Initialize the logger adapter.

        Args:
            logger: Base logger to adapt
            run_id: Identifier of the training run being logged
            extra: Extra fields to include in all logs
        """
        self.run_id = run_id or uuid.uuid4().hex[:12]
        extra_dict = dict(extra or {})
        extra_dict["run_id"] = self.run_id
        super().__init__(logger, extra_dict)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Merge the adapter context into the record's extra fields."""
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_run_logger(name: str, run_id: Optional[str] = None, **extra: Any) -> LoggerAdapter:
    """
    Get a logger bound to a training run.

    Args:
        name: Logger name
        run_id: Training run identifier (generated when omitted)
        **extra: Additional context fields

    Returns:
        LoggerAdapter: Configured logger adapter
    """
    return LoggerAdapter(get_logger(name), run_id, extra)
