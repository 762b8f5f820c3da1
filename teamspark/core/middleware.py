import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from teamspark.core.config import settings
from teamspark.core.logging import request_id_var

logger = logging.getLogger("teamspark.http")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-ID (or mints one) and exposes it to the log formatter."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed_ms, 1),
            },
        )
        return response


class SecureHeadersMiddleware(BaseHTTPMiddleware):
    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitingMiddleware(BaseHTTPMiddleware):
    """
    Applies the fixed-window request limiter to API routes.
    The limiter is read from ``app.state.request_limiter`` on every request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        limiter = getattr(request.app.state, "request_limiter", None)
        if (
            limiter is None
            or not settings.rate_limit.enabled
            or not request.url.path.startswith(settings.api_prefix)
        ):
            return await call_next(request)

        result = limiter.check(request)
        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset),
        }
        if not result.allowed:
            retry_after = max(result.reset - int(time.time()), 1)
            logger.warning(f"Rate limit exceeded for {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "errors": [{"msg": "Too many requests", "code": "RATE_LIMITED"}],
                },
                headers={**headers, "Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
