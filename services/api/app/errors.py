"""
Error taxonomy for the service and the FastAPI handlers that render it.

Every error leaves the API as ``{"error": <message>}`` with an HTTP status:
  Unauthorized          401 — no resolvable caller identity
  InvalidRequest        400 — malformed request parameters
  UpstreamQueryFailure  500 — a read against the store failed (usually
                              recovered inside the scorer and never seen here)
  InternalError         500 — anything unexpected during computation
  SQLAlchemyError       409 on a constraint violation (IntegrityError), 500 otherwise
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class SuggestServiceError(Exception):
    status_code = 500
    default_message = "Unknown error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Unauthorized(SuggestServiceError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidRequest(SuggestServiceError):
    status_code = 400
    default_message = "Invalid request"


class UpstreamQueryFailure(SuggestServiceError):
    default_message = "Upstream query failed"

    def __init__(self, query: str, message: str | None = None) -> None:
        super().__init__(message or f"{query} query failed")
        self.query = query


class InternalError(SuggestServiceError):
    pass


async def _service_error_handler(request: Request, exc: SuggestServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
    return JSONResponse(status_code=422, content={"error": message})


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    if isinstance(exc, IntegrityError):
        return JSONResponse(status_code=409, content={"error": "Conflicting write"})
    return JSONResponse(status_code=500, content={"error": "Database error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SuggestServiceError, _service_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
