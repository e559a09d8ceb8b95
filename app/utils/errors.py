"""Error taxonomy for the chatbot API and the FastAPI handlers that render it."""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.utils.logger import logger


class ChatbotError(Exception):
    """Base error. Carries the HTTP status it maps to."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal Server Error"

    def __init__(self, message: str | None = None, details: str | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class BadRequest(ChatbotError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request."


class InvalidInput(BadRequest):
    message = "Invalid input."


class Unauthenticated(ChatbotError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "No token provided. Please login."


class TokenExpired(Unauthenticated):
    message = "Token expired. Please login again."


class InvalidToken(Unauthenticated):
    message = "Invalid token. Please login again."


class UpstreamError(ChatbotError):
    message = "Failed to generate response."


class StoreError(ChatbotError):
    message = "Chat history store failure."


class SigningError(ChatbotError):
    message = "Failed to issue session token."


def error_body(exc: ChatbotError) -> dict:
    body = {"error": exc.message}
    # 500-class responses expose the underlying error text
    if exc.status_code >= 500 and exc.details:
        body["details"] = exc.details
    return body


async def _chatbot_error_handler(request: Request, exc: ChatbotError):
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(content=error_body(exc), status_code=exc.status_code, headers=headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        content={"error": "Invalid request body.", "details": jsonable_errors(exc)},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        content={"error": "Internal Server Error", "details": str(exc)},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(ChatbotError, _chatbot_error_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_error_handler)
    target_app.add_exception_handler(Exception, _unhandled_error_handler)
