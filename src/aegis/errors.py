"""
HTTP error taxonomy and the handlers that render it.

Every failure leaves the API as the standard envelope
``{"success": false, "data": null, "message": ...}`` with a matching status
code. Handlers raise the subclasses below; database and collaborator failures
are not retried and surface as 500.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from aegis.app_logger import get_logger

log = get_logger("errors")


class AegisHTTPException(HTTPException):
    """Base class for errors raised by request handlers."""

    default_detail = "Error"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            status_code=status_code or self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class Unauthenticated(AegisHTTPException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class Forbidden(AegisHTTPException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(AegisHTTPException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not Found"


class BadRequest(AegisHTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad Request"


class InternalError(AegisHTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal Server Error"


def envelope_error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "data": None, "message": message}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    # asyncpg exposes the SQLSTATE; sqlite only has the message
    if getattr(orig, "sqlstate", None) == "23505" or getattr(orig, "pgcode", None) == "23505":
        return True
    low = str(orig or exc).lower()
    return "unique constraint" in low or "duplicate key" in low


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return envelope_error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
        return envelope_error(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        unique = _is_unique_violation(exc)
        log.warning(
            "IntegrityError on %s %s (unique=%s): %s",
            request.method, request.url.path, unique, getattr(exc, "orig", exc),
        )
        return envelope_error(
            status.HTTP_400_BAD_REQUEST,
            "Duplicate record" if unique else "Integrity error",
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        log.exception("Database error on %s %s", request.method, request.url.path)
        return envelope_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    @app.exception_handler(httpx.HTTPError)
    async def upstream_error_handler(request: Request, exc: httpx.HTTPError):
        log.exception("Upstream call failed on %s %s", request.method, request.url.path)
        return envelope_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
