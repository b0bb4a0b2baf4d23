"""
Error taxonomy shared by services and HTTP routes.

Every error carries the HTTP status it maps to at the request boundary.
Absence of data is never an error: stores and services return ``None``.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError


class KpiboardError(Exception):
    """Base class for errors surfaced to callers as ``{ok: false, error}``."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(KpiboardError):
    """A required field is missing or malformed."""

    status_code = 400


class AuthError(KpiboardError):
    """No credential, or an invalid one, was presented."""

    status_code = 401


class NotFoundError(KpiboardError):
    """Unknown route or action."""

    status_code = 404


class UpstreamError(KpiboardError):
    """The remote datastore or remote procedure reported a failure."""

    status_code = 500

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.details = details


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        message = err.get("msg", "invalid value").removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "invalid request"
