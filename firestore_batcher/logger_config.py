import functools
import json
import logging
import traceback
from datetime import datetime
from datetime import timezone
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .metrics_config import record_call_end
from .metrics_config import record_call_start


class ErrorCategory(Enum):
    """Severity categories for structured error logs."""

    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


_CATEGORY_LEVELS = {
    ErrorCategory.CRITICAL: logging.CRITICAL,
    ErrorCategory.ERROR: logging.ERROR,
    ErrorCategory.WARNING: logging.WARNING,
    ErrorCategory.INFO: logging.INFO,
}

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredLogFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }

        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


# --- Logging Setup ---
batcher_logger = logging.getLogger("firestore_batcher")
batcher_logger.setLevel(logging.INFO)
batcher_logger.addHandler(logging.NullHandler())

error_logger = logging.getLogger("error_logger")
error_logger.setLevel(logging.INFO)
_error_handler = logging.StreamHandler()
_error_handler.setFormatter(StructuredLogFormatter())
error_logger.addHandler(_error_handler)
# Prevent logs from propagating to the root logger if not desired
error_logger.propagate = False


def configure_logging(settings) -> None:
    """Apply level, format and optional file output from settings."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    batcher_logger.setLevel(level)

    if settings.log_file:
        log_file_path = Path(settings.log_file).resolve()
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        already_attached = any(
            isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file_path
            for h in batcher_logger.handlers
        )
        if not already_attached:
            # maxBytes: 10MB per file, backupCount: 5 files (total ~50MB)
            file_handler = RotatingFileHandler(log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5)
            if settings.structured_logging:
                file_handler.setFormatter(StructuredLogFormatter())
            else:
                file_handler.setFormatter(
                    logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
                )
            batcher_logger.addHandler(file_handler)


def log_structured_error(
    category: ErrorCategory,
    message: str,
    exception: BaseException | None = None,
    context: dict | None = None,
    operation: str | None = None,
    **kwargs,
) -> None:
    """Log an error with a category and structured context fields."""
    extra = {"error_category": category.value}
    if operation:
        extra["operation"] = operation
    if context:
        extra.update(context)
    if exception is not None:
        extra["exception_type"] = type(exception).__name__
        to_dict = getattr(exception, "to_dict", None)
        if callable(to_dict):
            extra["error_details"] = to_dict()
    extra.update(kwargs)

    error_logger.log(
        _CATEGORY_LEVELS[category],
        message,
        exc_info=exception,
        extra=extra,
    )


# --- Decorator for Logging Batcher Calls with Metrics ---
def log_batcher_call(func):
    """Log start, completion and failure of an async batcher method."""

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        func_name = getattr(func, "__name__", "unknown_function")

        start_time = None
        try:
            start_time = record_call_start(func_name)
        except Exception as e:
            # Metrics errors must not break the call
            batcher_logger.warning(f"Metrics recording failed for {func_name}: {e}")

        batcher_logger.debug(f"Calling {func_name} with {self.stats().to_dict()}")
        try:
            result = await func(self, *args, **kwargs)
            batcher_logger.debug(f"{func_name} completed with {self.stats().to_dict()}")
            return result
        except Exception as e:
            batcher_logger.error(f"{func_name} raised exception: {e}")
            log_structured_error(
                category=ErrorCategory.ERROR,
                message=f"Batcher call {func_name} failed",
                exception=e,
                operation="batcher_call",
                function=func_name,
                stats=self.stats().to_dict(),
            )
            raise
        finally:
            record_call_end(func_name, start_time)

    return wrapper
