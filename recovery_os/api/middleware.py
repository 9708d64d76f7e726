"""API middleware for authentication and logging."""

import hmac
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        client = request.client.host if request.client else "unknown"
        logger.info("Request: %s %s client=%s", request.method, request.url.path, client)

        response = await call_next(request)

        duration = time.perf_counter() - start_time
        logger.info(
            "Response: %s %s status=%d duration=%.3fs",
            request.method, request.url.path, response.status_code, duration,
        )

        response.headers["X-Process-Time"] = f"{duration:.3f}"

        return response


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Shared-key check for deployments that put the API behind a gateway."""

    SKIP_PATHS = ("/health", "/health/ready", "/health/live", "/docs", "/openapi.json")

    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        api_key_header = request.headers.get("X-API-Key")

        provided_key = None
        if auth_header and auth_header.startswith("Bearer "):
            provided_key = auth_header[7:]
        elif api_key_header:
            provided_key = api_key_header

        if not provided_key or not hmac.compare_digest(provided_key, self.api_key):
            logger.warning(
                "Unauthorized request: %s %s client=%s",
                request.method, request.url.path,
                request.client.host if request.client else "unknown",
            )
            return Response(
                content='{"error": "Unauthorized", "detail": "Invalid or missing API key"}',
                status_code=401,
                media_type="application/json",
            )

        return await call_next(request)
