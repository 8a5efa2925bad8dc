# sessionshare/middleware/error_handler.py
# Error envelope for the share API
# Every failure leaves as {"error": {"code", "message", "details"?, "request_id"?}}

import traceback
import logging
from typing import Callable
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sessionshare.errors import AppError, MalformedPayloadError
from sessionshare.utils.logger import log_exception

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID", str(id(request)))


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None,
    request_id: str = None
) -> JSONResponse:
    """Create a standardized JSON error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    if request_id:
        content["error"]["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=content)


def _validation_details(exc: RequestValidationError) -> dict:
    # Keep only JSON-safe fields; pydantic's ctx may hold exception objects
    return {
        "errors": [
            {
                "loc": [str(part) for part in err.get("loc", ())],
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
    }


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Last line of defence: anything not handled by the registered exception
    handlers becomes a 500 INTERNAL_ERROR envelope.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)

        except Exception as e:
            request_id = _request_id(request)
            error_details = None
            if self.debug:
                error_details = {
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            log_exception(e, context=f"Unhandled error on {request.url.path}")
            logger.error(
                f"Unhandled exception: {type(e).__name__}: {e}",
                extra={"request_id": request_id, "path": request.url.path},
                exc_info=True
            )

            return create_error_response(
                error_code="INTERNAL_ERROR",
                message="An internal error occurred. Please try again later.",
                status_code=500,
                details=error_details,
                request_id=request_id
            )


def setup_exception_handlers(app):
    """Register exception handlers on FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log_exception(exc, context=f"{exc.error_code} on {request.url.path}")
        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
            request_id=_request_id(request)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        # Malformed request bodies share the MALFORMED_PAYLOAD contract of the core
        error = MalformedPayloadError("Request body does not match the expected shape")
        logger.warning(
            f"Malformed payload on {request.url.path}",
            extra={"request_id": _request_id(request), "path": request.url.path}
        )
        return create_error_response(
            error_code=error.error_code,
            message=error.message,
            status_code=error.status_code,
            details=_validation_details(exc),
            request_id=_request_id(request)
        )
