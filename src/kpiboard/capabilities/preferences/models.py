"""Per-user preference records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PRESET_KEY = "global_filters"


class UserPreference(BaseModel):
    """One ``(user, key)`` preference. The owning user is implied by the credential."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[Any] = None
    key: str = Field(min_length=1)
    value: Dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("key")
    @classmethod
    def _key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("key must not be blank")
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, value: Any) -> Any:
        return {} if value is None else value
