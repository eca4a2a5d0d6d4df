"""
Logging configuration with structured JSON logging for the receipt engine.

Every validation request is logged inside a LogContext so the request file
and expected amount appear on each record emitted while it is processed.
The context lives in a ContextVar, so overlapping requests on different
threads never see each other's fields.
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Mapping
from pythonjsonlogger.json import JsonFormatter


_request_context: ContextVar[Mapping[str, Any]] = ContextVar(
    "receipt_request_context", default={}
)


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level and source location fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno


class RequestContextFilter(logging.Filter):
    """Copies the active request context onto each record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in current_log_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(log_level: str = "INFO", use_json: bool = True) -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: Whether to use JSON formatting (True for production, False for development)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.addFilter(RequestContextFilter())

    if use_json:
        formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(line)d %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set specific log levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.INFO)


def setup_logging_from_settings(settings) -> None:
    """
    Configure logging from engine settings. JSON output is used in
    production; other environments get the human-readable format.

    Args:
        settings: Settings instance providing log_level and environment
    """
    use_json = settings.environment == "production"
    setup_logging(log_level=settings.log_level, use_json=use_json)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def current_log_context() -> Mapping[str, Any]:
    """Request context fields active in the current thread or task."""
    return _request_context.get()


class LogContext:
    """
    Context manager that attaches request fields to every record logged
    while it is active. Nested contexts merge; inner values win.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        """
        Initialize log context.

        Args:
            logger: Logger the context is announced on
            **context: Context fields to add to logs
        """
        self.logger = logger
        self.context = context
        self._token = None

    def __enter__(self):
        merged = {**_request_context.get(), **self.context}
        self._token = _request_context.set(merged)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None


def log_with_context(
    logger: logging.Logger, level: str, message: str, **context: Any
) -> None:
    """
    Log a message with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields
    """
    log_func = getattr(logger, level.lower())
    log_func(message, extra=context)
