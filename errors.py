"""
Error taxonomy and the FastAPI handlers that turn it into JSON responses.
"""

import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

import config

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[dict] = None):
        self.message = message or self.message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    message = "Validation failed"


class DuplicateKeyError(AppError):
    status_code = 400

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} must be unique", {field: f"{field} must be unique"})


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class AuthError(AppError):
    status_code = 401
    message = "Unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    message = "Forbidden"


class SignatureError(AppError):
    status_code = 400
    message = "Invalid signature"


class ConflictError(AppError):
    status_code = 409
    message = "Record was modified concurrently, try again"


class PaymentGatewayError(AppError):
    status_code = 502
    message = "Payment gateway error"


def field_errors(details) -> dict:
    """Collapse pydantic error details to {field: message}, first message wins."""
    errors = {}
    for err in details:
        loc = [p for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = str(loc[0]) if loc else "body"
        msg = err.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        errors.setdefault(field, msg)
    return errors


def _body(exc: AppError) -> dict:
    body = {"success": False, "message": exc.message}
    if exc.errors:
        body["errors"] = exc.errors
    return body


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_body(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=_body(ValidationError(errors=field_errors(exc.errors()))))


async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
    return JSONResponse(status_code=400, content=_body(ValidationError(errors=field_errors(exc.errors()))))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"success": False, "message": "Something went wrong!"}
    if not config.is_production():
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
