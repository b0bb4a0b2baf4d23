"""Caller credentials.

The layer never decides who may read or write what. It only insists a bearer
token is present and hands that token to the datastore, whose access-control
rules do the scoping.
"""

from __future__ import annotations

from typing import Callable, Optional

from pydantic import BaseModel, Field

from .errors import AuthError

TokenValidator = Callable[[str], bool]


class Credential(BaseModel):
    """Bearer token presented by the caller."""

    token: str = Field(min_length=1, repr=False)

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.token}"

    @classmethod
    def from_authorization_header(
        cls,
        header: Optional[str],
        *,
        token_validator: Optional[TokenValidator] = None,
    ) -> "Credential":
        if not header or not header.startswith("Bearer "):
            raise AuthError("Unauthorized")
        token = header.split(" ", 1)[1].strip()
        if not token:
            raise AuthError("Unauthorized")
        if token_validator is not None and not token_validator(token):
            raise AuthError("Invalid token")
        return cls(token=token)


def require_credential(credential: Optional[Credential]) -> Credential:
    """Reject calls made without a credential."""
    if credential is None or not credential.token:
        raise AuthError("Unauthorized")
    return credential
