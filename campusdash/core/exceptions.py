"""
Domain errors and the global exception handlers that map them to HTTP.

Handlers never leak stack traces or internal detail to clients; the full
error is only logged server-side.
"""

from __future__ import annotations

import enum
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class DomainError(Exception):
    """Base class for errors raised by the core services."""


class ValidationError(DomainError):
    """One or more fields violate their constraints."""

    def __init__(self, fields: dict[str, str], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.summary = message
        self.fields = dict(fields)

    def __str__(self) -> str:
        detail = "; ".join(f"{k}: {v}" for k, v in self.fields.items())
        return f"{self.summary}: {detail}" if detail else self.summary


class ConflictError(DomainError):
    """A uniqueness constraint would be violated."""


class NotFoundError(DomainError):
    """The requested entity does not exist."""


class CredentialError(DomainError):
    """Malformed plaintext or hash at the password hashing boundary."""


class TokenErrorKind(str, enum.Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    MALFORMED_HEADER = "malformed_header"


class TokenError(DomainError):
    def __init__(self, kind: TokenErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class AuthenticationError(DomainError):
    """Bad credentials or an account that may not sign in."""


class AuthorizationError(DomainError):
    """Role or permission denial."""


# ── Handlers ────────────────────────────────────────────────────────
def _error(status_code: int, detail: str, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "success": False, **extra},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=exc.headers,
    )


async def _validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, exc.summary, fields=exc.fields)


async def _conflict_error_handler(_request: Request, exc: ConflictError) -> JSONResponse:
    logger.info("Conflict: %s", exc)
    return _error(409, "Resource already exists")


async def _not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, str(exc) or "Not found")


async def _credential_error_handler(_request: Request, exc: CredentialError) -> JSONResponse:
    logger.error("Credential error: %s", exc, exc_info=True)
    return _error(500, "Internal server error")


async def _token_error_handler(_request: Request, exc: TokenError) -> JSONResponse:
    # Invalid, expired and malformed tokens look identical to the caller.
    logger.debug("Token rejected (%s)", exc.kind.value)
    return JSONResponse(
        status_code=401,
        content={"detail": "Authentication failed", "success": False},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _authentication_error_handler(_request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc) or "Authentication failed", "success": False},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _authorization_error_handler(_request: Request, exc: AuthorizationError) -> JSONResponse:
    return _error(403, str(exc) or "Access denied")


async def _rate_limit_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error(429, f"Rate limit exceeded: {exc.detail}")


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return _error(409, "Database constraint violation")


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return _error(500, "Internal database error")


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _error(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ConflictError, _conflict_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(CredentialError, _credential_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(TokenError, _token_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AuthenticationError, _authentication_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AuthorizationError, _authorization_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
