"""
Quill API Response Utilities
Standardized response format and error handling
"""
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, List
from datetime import datetime

from .logging_config import api_logger
from .services.errors import DomainError


def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"


# ============================================================
# SUCCESS RESPONSES
# ============================================================

def success(data: Any = None, message: str = None, meta: Dict = None) -> Dict:
    """Create success response"""
    response = {
        "ok": True,
        "timestamp": _now(),
    }

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    if meta:
        response["meta"] = meta

    return response


def deleted(message: str = "Deleted successfully") -> Dict:
    """200 Deleted response"""
    return success(message=message)


def paginated(items: List, total: int, page: int = 1, per_page: int = 20) -> Dict:
    """Paginated list response"""
    return {
        "ok": True,
        "data": items,
        "pagination": {
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": (total + per_page - 1) // per_page,
            "has_next": page * per_page < total,
            "has_prev": page > 1,
        },
        "timestamp": _now(),
    }


# ============================================================
# ERROR RESPONSES
# ============================================================

def _error_body(message: str, error_code: str) -> Dict:
    return {
        "ok": False,
        "error": message,
        "error_code": error_code,
        "timestamp": _now(),
    }


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render workflow and storage errors"""
    api_logger.warning(
        f"Domain error: {exc.message}",
        status_code=exc.status_code,
        error_code=exc.error_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.error_code),
    )


async def api_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTP errors raised by dependencies and routes"""
    api_logger.warning(
        f"HTTP Error: {exc.detail}",
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )
