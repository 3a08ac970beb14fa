"""Global exception handlers for FastAPI.

Store errors are mapped by ErrorKind, never by message text. Clients get a
user-safe message; the technical detail, including any chained driver
error, is logged here and nowhere else.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, request_id_of, ErrorCodes
from core.errors import BillingError, ErrorKind, describe_validation_errors

logger = logging.getLogger(__name__)


# kind -> (HTTP status, error code, fixed client message or None to use the error's own)
ERROR_MAP: dict[ErrorKind, tuple[int, str, str | None]] = {
    ErrorKind.CONFLICT: (409, ErrorCodes.CONFLICT, None),
    ErrorKind.INVALID_OPERATION: (409, ErrorCodes.INVALID_OPERATION, None),
    ErrorKind.NOT_FOUND: (404, ErrorCodes.NOT_FOUND, None),
    ErrorKind.TRANSIENT: (
        503,
        ErrorCodes.SERVICE_UNAVAILABLE,
        "Service temporarily unavailable. Please try again.",
    ),
    ErrorKind.VALIDATION: (400, ErrorCodes.VALIDATION_ERROR, None),
}


def _json(status_code: int, code: str, message: str, request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        status_code, code, fixed_message = ERROR_MAP[exc.kind]
        where = f"{request.method} {request.url.path}"

        if exc.kind is ErrorKind.TRANSIENT:
            logger.error(
                f"{where}: {exc.message} (cause: {exc.__cause__!r})",
                exc_info=exc,
            )
        else:
            logger.info(f"{where}: {exc.kind.value}: {exc.message}")

        return _json(status_code, code, fixed_message or exc.message, request)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(400, ErrorCodes.VALIDATION_ERROR, describe_validation_errors(exc.errors()), request)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred", request)
