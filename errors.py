"""
Error taxonomy and the FastAPI handlers that turn it into `{"error": ...}` bodies.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FeedbackHubError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidCredentials(FeedbackHubError):
    status_code = 401
    message = "Invalid credentials"


class Unauthorized(FeedbackHubError):
    status_code = 401
    message = "Unauthorized"


class Forbidden(FeedbackHubError):
    status_code = 403
    message = "Forbidden: superAdmin role required"


class ValidationError(FeedbackHubError):
    status_code = 400
    message = "Invalid request"


class DuplicateUser(FeedbackHubError):
    status_code = 400
    message = "User already exists"


# Raised by the user-creation path; same wire shape as the store-level error.
UserExists = DuplicateUser


class StoreUnavailable(FeedbackHubError):
    status_code = 500
    message = "Internal server error"


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FeedbackHubError)
    async def handle_app_error(request: Request, exc: FeedbackHubError):
        if isinstance(exc, StoreUnavailable):
            logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.__cause__ or exc)
            return _error_response(exc.status_code, StoreUnavailable.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = ValidationError.message
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")
