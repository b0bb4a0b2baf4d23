"""Dashboard capability exports."""

from .base import DashboardStore
from .models import WIDGET_OPTION_SCHEMAS, Dashboard, Widget, WidgetResult

__all__ = [
    "DashboardStore",
    "WIDGET_OPTION_SCHEMAS",
    "Dashboard",
    "Widget",
    "WidgetResult",
]
