"""
Session error taxonomy and global exception handlers.

The handlers keep stack traces away from clients and translate the
session errors into ``{"detail": ..., "success": False}`` bodies.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ── Error taxonomy ──────────────────────────────────────────────────
class InvalidArgument(ValueError):
    """Malformed input handed to a store or session operation."""


class StorageError(Exception):
    """Secure storage failed for a reason other than data corruption."""

    def __init__(self, message: str, operation: str) -> None:
        super().__init__(message)
        self.operation = operation


class RemoteServiceError(Exception):
    """The remote user service answered with an error."""


class AuthError(RemoteServiceError):
    """Credentials rejected or account already exists."""


class PermissionDenied(Exception):
    """The current role is not allowed to perform the action."""


# ── Handlers ────────────────────────────────────────────────────────
def _error_body(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "success": False})


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return _error_body(exc.status_code, exc.detail)


async def _auth_error_handler(_request: Request, exc: AuthError) -> JSONResponse:
    return _error_body(401, str(exc) or "Authentication failed")


async def _remote_error_handler(_request: Request, exc: RemoteServiceError) -> JSONResponse:
    logger.warning("Remote user service error: %s", exc)
    return _error_body(502, str(exc) or "Remote user service error")


async def _permission_denied_handler(_request: Request, exc: PermissionDenied) -> JSONResponse:
    return _error_body(403, str(exc) or "Insufficient role")


async def _invalid_argument_handler(_request: Request, exc: InvalidArgument) -> JSONResponse:
    return _error_body(422, str(exc))


async def _storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Secure storage error during %s: %s", exc.operation, exc, exc_info=True)
    return _error_body(500, "Session storage error")


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _error_body(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AuthError, _auth_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RemoteServiceError, _remote_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PermissionDenied, _permission_denied_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidArgument, _invalid_argument_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StorageError, _storage_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
