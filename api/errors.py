"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as SchemaValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from api.middleware import request_id_of
from clients.email_client import EmailGatewayError
from core.errors import ErrorKind, LedgerError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.CONSISTENCY: 500,
}


def _respond(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if exc.kind == ErrorKind.CONSISTENCY:
            logger.error(f"Ledger consistency failure [{exc.code}]: {exc.message}")
            return _respond(request, 500, exc.code, "An internal error occurred")

        if exc.kind == ErrorKind.CONFLICT:
            logger.warning(f"Concurrent modification: {exc.message}")

        return _respond(request, STATUS_BY_KIND[exc.kind], exc.code, exc.message)

    @app.exception_handler(EmailGatewayError)
    async def email_error_handler(request: Request, exc: EmailGatewayError):
        return _respond(request, 502, ErrorCodes.EMAIL_DELIVERY_FAILED, str(exc))

    @app.exception_handler(SchemaValidationError)
    async def schema_error_handler(request: Request, exc: SchemaValidationError):
        return _respond(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _respond(request, 400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _respond(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _respond(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
