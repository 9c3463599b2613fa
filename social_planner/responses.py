"""
Social Planner API Response Utilities
Standardized error format for rejected requests
"""
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
from typing import Any, Dict

from .errors import PlannerError
from .logging_config import api_logger


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(data: Any = None, message: str = None) -> Dict:
    """Create success response"""
    response = {
        "ok": True,
        "timestamp": _timestamp(),
    }
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    return response


def error_body(message: str, error_code: str, details: Dict = None) -> Dict:
    return {
        "ok": False,
        "error": message,
        "error_code": error_code,
        "details": details,
        "timestamp": _timestamp(),
    }


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

async def planner_exception_handler(request: Request, exc: PlannerError) -> JSONResponse:
    """Render domain errors raised by the lifecycle and approval code"""
    api_logger.warning(
        f"API Error: {exc.message}",
        status_code=exc.status_code,
        error_code=exc.error_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, exc.details),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    api_logger.warning(
        f"HTTP Error: {exc.detail}",
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    api_logger.error(
        f"Unexpected error: {exc}",
        error=exc,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR"),
    )
