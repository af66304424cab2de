"""Request context middleware for logging."""
import time
import uuid
from typing import Any
from typing import Callable

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture request context and write one access log line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from X-Request-ID or generated)
        - Client IP (first X-Forwarded-For hop or direct peer)
        - User agent
        - Request method and path
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        client_ip = self._get_client_ip(request)
        request_path = f"{request.method} {request.url.path}"
        user_agent = request.headers.get("User-Agent")

        with logger.contextualize(
            request_id=request_id, client_ip=client_ip, user_agent=user_agent, request_path=request_path
        ):
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                content_type=request.headers.get("Content-Type"),
                content_length=request.headers.get("Content-Length"),
                status_code=response.status_code,
                response_time_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

    def _get_client_ip(self, request: Request) -> str:
        """Get real client IP address, honouring reverse-proxy headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"
