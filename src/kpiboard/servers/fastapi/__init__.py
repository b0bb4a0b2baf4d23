"""
FastAPI server for kpiboard.
"""

from .app import configure_logging, create_app, main
from .routes import install_error_handlers, register_kpiboard_routes

__all__ = [
    "configure_logging",
    "create_app",
    "main",
    "install_error_handlers",
    "register_kpiboard_routes",
]
