"""
Request/response logging middleware.
"""
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from marketplace.core.logging import (
    generate_request_id,
    set_request_id,
    set_user_id,
    log_event
)

# Provider callbacks: bodies and signature headers stay out of the logs
_WEBHOOK_PREFIX = "/api/webhooks/"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to track request IDs and log all requests/responses."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_user_id(None)

        start_time = time.time()
        is_webhook = request.url.path.startswith(_WEBHOOK_PREFIX)

        context = {
            "method": request.method,
            "path": request.url.path,
            "client_host": request.client.host if request.client else None,
        }
        if not is_webhook:
            context.update({
                "query_params": dict(request.query_params),
                "user_agent": request.headers.get("user-agent"),
                "content_type": request.headers.get("content-type"),
                "content_length": request.headers.get("content-length"),
            })

        log_event(
            level="INFO",
            logger="marketplace.middleware.logging",
            function="dispatch",
            operation="http_request",
            event="request_received",
            message=f"Request received: {request.method} {request.url.path}",
            context=context
        )

        try:
            response = await call_next(request)
        except Exception as e:
            log_event(
                level="ERROR",
                logger="marketplace.middleware.logging",
                function="dispatch",
                operation="http_request",
                event="request_error",
                message=f"Request error: {request.method} {request.url.path}",
                context={
                    "duration_seconds": time.time() - start_time,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=e
            )
            raise

        log_event(
            level="INFO",
            logger="marketplace.middleware.logging",
            function="dispatch",
            operation="http_request",
            event="response_sent",
            message=f"Response sent: {request.method} {request.url.path} -> {response.status_code}",
            context={
                "status_code": response.status_code,
                "duration_seconds": time.time() - start_time,
            }
        )

        response.headers["X-Request-ID"] = request_id
        return response
