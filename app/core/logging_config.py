import logging
import logging.config
import json
from datetime import datetime
from typing import Dict, Any
from pathlib import Path

from prometheus_client import Counter

from app.core.config import settings


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders log records as structured JSON lines
    so the rotating files can be shipped to a log aggregator as-is
    """

    EXTRA_FIELDS = (
        'service', 'operation', 'endpoint', 'method', 'status_code',
        'response_time_ms', 'user_id', 'document_id', 'session_id',
        'request_id', 'success', 'error_code',
    )

    def format(self, record: logging.LogRecord) -> str:
        """
        Formats the log record as one JSON object
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra context when present
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add exception info if any
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging() -> None:
    """
    Configures console output plus rotating JSON log files,
    one file per concern and one for errors only
    """
    # Create the log directory if it does not exist
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Logging configuration
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": "INFO",
                "stream": "ext://sys.stdout"
            },
            "file_all": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "structured",
                "filename": str(log_dir / "app.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 10,
                "level": "INFO"
            },
            "file_errors": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "structured",
                "filename": str(log_dir / "errors.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 10,
                "level": "ERROR"
            },
            # Calls to the AI gateway
            "file_ai": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "structured",
                "filename": str(log_dir / "ai.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "level": "INFO"
            },
            # One line per HTTP request
            "file_api": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "structured",
                "filename": str(log_dir / "api.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 10,
                "level": "INFO"
            }
        },
        "loggers": {
            "app": {
                "level": "INFO",
                "handlers": ["console", "file_all", "file_errors"],
                "propagate": False
            },
            "app.services.ai_text_service": {
                "level": "INFO",
                "handlers": ["console", "file_ai", "file_errors"],
                "propagate": False
            },
            "app.requests": {
                "level": "INFO",
                "handlers": ["file_api", "file_errors"],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console", "file_api"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["file_api"],
                "propagate": False
            },
            "fastapi": {
                "level": "INFO",
                "handlers": ["console", "file_api"],
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console", "file_all"]
        }
    }

    # Apply configuration
    logging.config.dictConfig(logging_config)

    logger = logging.getLogger("app")
    logger.info("Logging system initialized successfully")
    logger.info(f"Log files will be stored in: {log_dir.absolute()}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that merges fixed context (service name and the like)
    into every record's extra fields
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Adds the adapter context to the record's extra fields"""
        if self.extra:
            kwargs.setdefault('extra', {}).update(self.extra)
        return msg, kwargs


def get_ai_logger() -> LoggerAdapter:
    """Logger for calls to the AI gateway."""
    base_logger = logging.getLogger("app.services.ai_text_service")
    return LoggerAdapter(base_logger, {"service": "ai"})


def get_request_logger() -> LoggerAdapter:
    """Logger for HTTP request lines."""
    base_logger = logging.getLogger("app.requests")
    return LoggerAdapter(base_logger, {"service": "api"})


def log_api_request(logger: logging.Logger, method: str, endpoint: str,
                    status_code: int = None, response_time_ms: int = None,
                    user_id: str = None, **kwargs):
    """
    Records one API request with structured context.

    Args:
        logger: Logger to use
        method: HTTP method
        endpoint: Path requested
        status_code: Response status
        response_time_ms: Duration in milliseconds
        user_id: Authenticated user, if any
        **kwargs: Additional fields
    """
    extra = {
        "method": method,
        "endpoint": endpoint,
    }

    if status_code:
        extra["status_code"] = status_code
    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms
    if user_id:
        extra["user_id"] = user_id

    extra.update(kwargs)

    # Server errors go to the error log too
    if status_code and status_code >= 500:
        logger.error(f"API request failed: {method} {endpoint}", extra=extra)
    else:
        logger.info(f"API request: {method} {endpoint}", extra=extra)


def log_ai_operation(logger: logging.Logger, operation: str,
                     success: bool = True, response_time_ms: int = None,
                     **kwargs):
    """
    Records one call to the AI gateway and bumps the matching counter.

    Args:
        logger: Logger to use
        operation: clean / format / highlight / suggest_categories / generate_quiz
        success: Whether the call produced a usable result
        response_time_ms: Duration in milliseconds
        **kwargs: Additional fields (status_code, document_id, ...)
    """
    extra = {
        "operation": operation,
        "success": success,
    }

    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms

    extra.update(kwargs)
    AI_OPERATIONS_TOTAL.labels(operation=operation, outcome="success" if success else "failure").inc()

    if success:
        logger.info(f"AI operation successful: {operation}", extra=extra)
    else:
        logger.warning(f"AI operation failed: {operation}", extra=extra)


# Prometheus metrics
AI_OPERATIONS_TOTAL = Counter(
    "onquiz_ai_operations_total",
    "Calls to the AI gateway by operation and outcome",
    ["operation", "outcome"],
)
QUIZ_SUBMISSIONS_TOTAL = Counter(
    "onquiz_quiz_submissions_total",
    "Completed quiz attempts by verdict",
    ["verdict"],
)
