"""Custom exception classes and handlers."""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BusinessLogicError(Exception):
    """Raised for domain-specific errors; rendered as ``{"error": detail}``."""

    status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, detail: str, status_code: int | None = None, extra: dict[str, Any] | None = None):
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(detail)


class ValidationError(BusinessLogicError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BusinessLogicError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BusinessLogicError):
    """Scheduling overlap or a referenced row blocking a delete."""

    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(BusinessLogicError):
    """Role or ownership check failed. Use 401 when there is no usable identity."""

    status_code = status.HTTP_403_FORBIDDEN


class PolicyError(BusinessLogicError):
    """A business rule denied the request, e.g. the refund window."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(BusinessLogicError):
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(BusinessLogicError):
    """The store or the payment provider failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI app."""

    @app.exception_handler(BusinessLogicError)
    async def _business_error_handler(_: Request, exc: BusinessLogicError):
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s: %s", type(exc).__name__, exc.detail, exc_info=exc.__cause__)
        return JSONResponse(
            {"error": exc.detail, **exc.extra},
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(_: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Missing or invalid fields", "details": jsonable_encoder(exc.errors())},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(_: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
