"""Application configuration.

Configuration is built once at startup and passed explicitly to the
application factory. Values come from ``KPIBOARD_*`` environment variables;
``SUPABASE_URL`` and ``SUPABASE_ANON_KEY`` are honoured as fallbacks for the
datastore settings.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class KpiboardConfig(BaseSettings):
    """Settings for the datastore binding and the HTTP server.

    Args:
        datastore_url: Base URL of the PostgREST-compatible datastore. When
            unset, in-memory stores and the SQLite reference procedure are used.
        datastore_api_key: Project API key sent as the ``apikey`` header.
        datastore_timeout: Request timeout in seconds; ``None`` keeps the
            transport default.
    """

    model_config = SettingsConfigDict(
        env_prefix="KPIBOARD_",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    datastore_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "datastore_url", "KPIBOARD_DATASTORE_URL", "SUPABASE_URL"
        ),
    )
    datastore_api_key: Optional[str] = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices(
            "datastore_api_key", "KPIBOARD_DATASTORE_API_KEY", "SUPABASE_ANON_KEY"
        ),
    )
    datastore_timeout: Optional[float] = Field(default=None, gt=0)

    semantic_models_table: str = "semantic_models"
    dashboards_table: str = "user_dashboards"
    widgets_table: str = "dashboard_widgets"
    preferences_table: str = "user_prefs"
    aggregate_cache_table: str = "aggregate_cache"
    aggregate_procedure: str = "aggregate_items"
    aggregate_cache_ttl: float = Field(default=300.0, gt=0)

    sqlite_path: str = ":memory:"
    sqlite_items_table: str = "items"

    api_prefix: str = "/functions/v1"
    cors_allow_origin: str = "*"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def uses_remote_datastore(self) -> bool:
        return bool(self.datastore_url)
