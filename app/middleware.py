"""
Custom middleware for security headers and request logging.
"""
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .logging_config import api_logger


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Post images are served from the storage provider's CDN
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: https://res.cloudinary.com https:; "
            "connect-src 'self' https:; "
            "frame-ancestors 'none';"
        )

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with its status and duration."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:8]}"
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            api_logger.error(
                f"{request.method} {request.url.path} -> ERROR",
                error=e,
                request_id=request_id,
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        level = "info" if response.status_code < 400 else "warning" if response.status_code < 500 else "error"
        getattr(api_logger, level)(
            f"{request.method} {request.url.path} -> {response.status_code}",
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response
