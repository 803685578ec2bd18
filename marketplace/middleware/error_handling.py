"""
Error handling that converts exceptions to JSON error responses.
"""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from marketplace.core.exceptions import MarketplaceException
import logging

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "status_code": status_code
        }
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to convert exceptions to appropriate HTTP responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)

        except MarketplaceException as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"Application error: {e.message}",
                exc_info=e.status_code >= 500,
                extra={
                    "context": {
                        "status_code": e.status_code,
                        "path": request.url.path,
                        "method": request.method,
                        "exception": type(e).__name__,
                    }
                }
            )
            return error_response(e.message, e.status_code)

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                exc_info=True,
                extra={
                    "context": {
                        "path": request.url.path,
                        "method": request.method
                    }
                }
            )
            return error_response("Internal server error", 500)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as a 400 with a readable message."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"

    logger.warning(
        f"Request validation failed: {message}",
        extra={"context": {"path": request.url.path, "errors": len(errors)}}
    )
    return error_response(message, 400)
