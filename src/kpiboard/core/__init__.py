"""Core primitives: errors, credentials and payload parsing."""

from .auth import Credential, TokenValidator, require_credential
from .errors import (
    AuthError,
    KpiboardError,
    NotFoundError,
    UpstreamError,
    ValidationError,
    describe_validation_error,
)
from .parsing import parse_payload, upstream_errors

__all__ = [
    "Credential",
    "TokenValidator",
    "require_credential",
    "KpiboardError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "UpstreamError",
    "describe_validation_error",
    "parse_payload",
    "upstream_errors",
]
