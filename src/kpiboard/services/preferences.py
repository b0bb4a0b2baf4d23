"""Saved filter presets."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from kpiboard.capabilities.preferences import (
    DEFAULT_PRESET_KEY,
    PreferenceStore,
    UserPreference,
)
from kpiboard.capabilities.semantic import AggregateFilter, AggregateRequest, DateRange
from kpiboard.core.auth import Credential, require_credential
from kpiboard.core.errors import ValidationError, describe_validation_error
from kpiboard.core.parsing import upstream_errors

logger = logging.getLogger(__name__)


def parse_preset_key(key: Any) -> str:
    if key is None:
        return DEFAULT_PRESET_KEY
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("key must be a non-empty string")
    return key.strip()


class FilterPresetService:
    """Per-user filter presets stored as preferences.

    A preset is a JSON object. When a preset is applied to an aggregate query
    its ``filters`` list is appended to the query's filters and its
    ``dateRange`` is used when the query has none. A key that was never saved
    reads back as ``{}``.
    """

    def __init__(self, store: PreferenceStore) -> None:
        self._store = store

    async def get(
        self, key: Any = DEFAULT_PRESET_KEY, *, credential: Optional[Credential]
    ) -> Dict[str, Any]:
        credential = require_credential(credential)
        key = parse_preset_key(key)
        with upstream_errors("filter preset get"):
            pref = await self._store.get(key, credential=credential)
        return pref.value if pref is not None else {}

    async def save(
        self,
        key: Any = DEFAULT_PRESET_KEY,
        value: Any = None,
        *,
        credential: Optional[Credential],
    ) -> UserPreference:
        credential = require_credential(credential)
        key = parse_preset_key(key)
        if value is None:
            value = {}
        if not isinstance(value, dict):
            raise ValidationError("value must be a JSON object")
        logger.info("Saving filter preset key=%s", key)
        with upstream_errors("filter preset save"):
            return await self._store.upsert(key, value, credential=credential)

    async def apply(
        self,
        request: AggregateRequest,
        key: Any = DEFAULT_PRESET_KEY,
        *,
        credential: Optional[Credential],
    ) -> AggregateRequest:
        """Return ``request`` narrowed by the preset saved under ``key``."""
        key = parse_preset_key(key)
        value = await self.get(key, credential=credential)
        filters = value.get("filters") or []
        if not isinstance(filters, list):
            raise ValidationError(f"preset '{key}' is malformed: filters must be a list")
        try:
            extra = [AggregateFilter.model_validate(f) for f in filters]
            date_range = value.get("dateRange")
            preset_range = DateRange.model_validate(date_range) if date_range else None
        except PydanticValidationError as e:
            raise ValidationError(
                f"preset '{key}' is malformed: {describe_validation_error(e)}"
            ) from e
        return request.model_copy(
            update={
                "filters": list(request.filters) + extra,
                "date_range": request.date_range or preset_range,
            }
        )
