"""
Social Planner Logging Configuration
Structured logging with context for debugging and monitoring
"""
import asyncio
import logging
import sys
import json
import traceback
from datetime import datetime, timezone
from typing import Optional
from functools import wraps
import time
import os

# ============================================================
# LOG LEVELS
# ============================================================

LOG_LEVEL = os.environ.get("SOCIAL_PLANNER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("SOCIAL_PLANNER_LOG_FORMAT", "json")  # json or text

# ============================================================
# STRUCTURED LOGGING
# ============================================================

class StructuredLogger:
    """Logger that outputs structured JSON logs"""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

        # Remove existing handlers
        self.logger.handlers = []

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter() if LOG_FORMAT == "json" else TextFormatter())
        self.logger.addHandler(handler)

    def _log(self, level: str, message: str, **context):
        extra = {
            "context": context,
            "logger_name": self.name,
        }
        getattr(self.logger, level.lower())(message, extra=extra)

    def debug(self, message: str, **context):
        self._log("debug", message, **context)

    def info(self, message: str, **context):
        self._log("info", message, **context)

    def warning(self, message: str, **context):
        self._log("warning", message, **context)

    def error(self, message: str, error: Optional[Exception] = None, **context):
        if error:
            context["error_type"] = type(error).__name__
            context["error_message"] = str(error)
            context["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self._log("error", message, **context)


class StructuredFormatter(logging.Formatter):
    """Formats logs as JSON"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": getattr(record, "logger_name", record.name),
            "message": record.getMessage(),
        }

        if hasattr(record, "context"):
            log_data.update(record.context)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Formats logs as readable text"""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S")

        parts = [
            f"{color}[{timestamp}]",
            f"[{record.levelname}]",
            f"{self.RESET}{record.getMessage()}",
        ]

        if hasattr(record, "context") and record.context:
            context_str = " ".join(f"{k}={v}" for k, v in record.context.items() if k != "traceback")
            if context_str:
                parts.append(f"\033[90m({context_str}){self.RESET}")

        return " ".join(parts)


# ============================================================
# REQUEST LOGGING MIDDLEWARE
# ============================================================

def log_request(logger: StructuredLogger):
    """FastAPI middleware for request logging"""
    from fastapi import Request
    from starlette.middleware.base import BaseHTTPMiddleware

    class RequestLoggingMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next):
            request_id = f"req_{int(time.time() * 1000)}"
            start_time = time.time()

            logger.info(
                f"{request.method} {request.url.path}",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
            )

            try:
                response = await call_next(request)
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                logger.error(
                    f"{request.method} {request.url.path} -> ERROR",
                    error=e,
                    request_id=request_id,
                    duration_ms=round(duration_ms, 2),
                )
                raise

            duration_ms = (time.time() - start_time) * 1000
            level = "info" if response.status_code < 400 else "warning" if response.status_code < 500 else "error"
            getattr(logger, level)(
                f"{request.method} {request.url.path} -> {response.status_code}",
                request_id=request_id,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            return response

    return RequestLoggingMiddleware


# ============================================================
# FUNCTION TIMING DECORATOR
# ============================================================

def timed(logger: StructuredLogger):
    """Decorator to log function execution time"""
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.time()
            result = await func(*args, **kwargs)
            logger.debug(
                f"{func.__name__} completed",
                function=func.__name__,
                duration_ms=round((time.time() - start) * 1000, 2),
            )
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.time()
            result = func(*args, **kwargs)
            logger.debug(
                f"{func.__name__} completed",
                function=func.__name__,
                duration_ms=round((time.time() - start) * 1000, 2),
            )
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# ============================================================
# LOGGER INSTANCES
# ============================================================

api_logger = StructuredLogger("social_planner.api")
scheduler_logger = StructuredLogger("social_planner.scheduler")
publisher_logger = StructuredLogger("social_planner.publisher")
db_logger = StructuredLogger("social_planner.db")


def get_logger(name: str) -> StructuredLogger:
    """Get or create a logger by name"""
    return StructuredLogger(f"social_planner.{name}")
