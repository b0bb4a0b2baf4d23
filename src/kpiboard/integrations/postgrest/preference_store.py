"""Preference store backed by a PostgREST ``user_prefs`` table."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from kpiboard.capabilities.preferences import PreferenceStore, UserPreference
from kpiboard.core.auth import Credential
from kpiboard.core.errors import UpstreamError, describe_validation_error

from .client import PostgrestClient


def _preference_from_row(row: dict) -> UserPreference:
    try:
        return UserPreference.model_validate(row)
    except PydanticValidationError as e:
        raise UpstreamError(
            f"Stored preference is malformed: {describe_validation_error(e)}"
        ) from e


class PostgrestPreferenceStore(PreferenceStore):
    """``user_prefs`` rows are unique on ``(user_id, key)``.

    ``user_id`` is never sent: the datastore fills it from the caller's token
    and its row policies hide other users' rows.
    """

    def __init__(self, client: PostgrestClient, *, table: str = "user_prefs") -> None:
        self.client = client
        self.table = table

    async def get(self, key: str, *, credential: Credential) -> Optional[UserPreference]:
        row = await self.client.select_one(
            self.table,
            credential=credential,
            filters={"key": key},
            columns="id,key,value,updated_at",
        )
        if row is None:
            return None
        return _preference_from_row(row)

    async def upsert(
        self, key: str, value: Dict[str, Any], *, credential: Credential
    ) -> UserPreference:
        row = await self.client.upsert(
            self.table,
            {"key": key, "value": value},
            credential=credential,
            on_conflict="user_id,key",
        )
        if row is None:
            return UserPreference(key=key, value=value)
        return _preference_from_row(row)
