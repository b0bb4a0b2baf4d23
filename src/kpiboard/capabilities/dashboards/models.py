"""Dashboard, widget and hydration result models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from jsonschema import validate
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kpiboard.capabilities.semantic.models import AggregateRequest


VizType = Literal["kpi", "bar", "line", "area", "pie", "table"]
WidgetStatus = Literal["ok", "empty", "error", "cancelled"]

_SERIES_OPTIONS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "x": {"type": "string"},
        "y": {"type": "array", "items": {"type": "string"}},
        "stacked": {"type": "boolean"},
        "smooth": {"type": "boolean"},
        "horizontal": {"type": "boolean"},
    },
    "additionalProperties": False,
}

WIDGET_OPTION_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "kpi": {
        "type": "object",
        "properties": {
            "metric": {"type": "string"},
            "comparison": {"enum": ["none", "previous_period", "goal"]},
            "goal": {"type": "number"},
        },
        "additionalProperties": False,
    },
    "bar": _SERIES_OPTIONS_SCHEMA,
    "line": _SERIES_OPTIONS_SCHEMA,
    "area": _SERIES_OPTIONS_SCHEMA,
    "pie": {
        "type": "object",
        "properties": {
            "category": {"type": "string"},
            "value": {"type": "string"},
            "donut": {"type": "boolean"},
        },
        "additionalProperties": False,
    },
    "table": {
        "type": "object",
        "properties": {
            "columns": {"type": "array", "items": {"type": "string"}},
            "pageSize": {"type": "integer", "minimum": 1},
        },
        "additionalProperties": False,
    },
}


def _new_id() -> str:
    return str(uuid.uuid4())


class Widget(BaseModel):
    """A chart or KPI tile carrying its own aggregate query."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    dashboard_id: Optional[str] = Field(default=None, alias="dashboardId")
    title: Optional[str] = None
    viz_type: VizType = Field(alias="vizType")
    query: AggregateRequest
    options: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[int] = None

    @field_validator("options", mode="before")
    @classmethod
    def _options(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _validate_options(self) -> "Widget":
        try:
            validate(instance=self.options, schema=WIDGET_OPTION_SCHEMAS[self.viz_type])
        except JsonSchemaValidationError as exc:
            raise ValueError(f"Invalid {self.viz_type} widget options: {exc.message}") from exc
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dashboard_id": self.dashboard_id,
            "title": self.title,
            "viz_type": self.viz_type,
            "query": self.query.model_dump(mode="json", by_alias=True),
            "options": dict(self.options),
            "position": self.position,
        }


class Dashboard(BaseModel):
    """A named set of widgets."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    description: Optional[str] = None
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    widgets: List[Widget] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("dashboard.name is required")
        return value

    @field_validator("widgets", mode="before")
    @classmethod
    def _widgets(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _attach_widgets(self) -> "Dashboard":
        ids = [w.id for w in self.widgets]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate widget ids: {', '.join(duplicates)}")
        for index, widget in enumerate(self.widgets):
            widget.dashboard_id = self.id
            if widget.position is None:
                widget.position = index
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_row(self) -> Dict[str, Any]:
        """Storage row; an unset ``created_by`` is left to the datastore default."""
        row = self.model_dump(
            mode="json", exclude={"widgets", "created_at", "updated_at"}
        )
        if row.get("created_by") is None:
            row.pop("created_by", None)
        return row


class WidgetResult(BaseModel):
    """Outcome of hydrating one widget.

    ``empty`` is a successful query without rows and is distinct from
    ``error``.
    """

    model_config = ConfigDict(populate_by_name=True)

    widget_id: str = Field(alias="widgetId")
    status: WidgetStatus
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    sql: Optional[str] = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
