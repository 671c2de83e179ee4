"""Error taxonomy shared by the HTTP and realtime surfaces.

Every error carries the HTTP status it maps to. On the realtime path the
same errors are turned into a private ``messageError`` frame instead.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CollabFlowError(Exception):
    """Base class for errors with a client-facing message."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(CollabFlowError):
    """Bad, expired or malformed token."""
    status_code = 401


class AuthTokenMissing(AuthenticationError):
    """No token was supplied at all."""

    def __init__(self, message: str = "Auth token missing") -> None:
        super().__init__(message)


class AuthorizationError(CollabFlowError):
    """Authenticated, but not a member of the workspace."""
    status_code = 403


class ValidationError(CollabFlowError):
    """Malformed input (missing workspace id, empty content, bad frame)."""
    status_code = 400


class PersistenceError(CollabFlowError):
    """The store is unavailable or a write failed."""
    status_code = 500


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


async def collabflow_error_handler(request: Request, exc: CollabFlowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[HTTP] %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(error_body(exc.message), status_code=exc.status_code)


def register_error_handlers(app: FastAPI) -> None:
    """Render every CollabFlowError as ``{"success": false, "message": ...}``."""
    app.add_exception_handler(CollabFlowError, collabflow_error_handler)
