"""
Framework-agnostic server components: service wiring and HTTP hooks.
"""

from .bundle import ServiceBundle, build_service_bundle
from .security import CORS_ALLOW_HEADERS, cors_headers, make_fastapi_cors_middleware

__all__ = [
    "ServiceBundle",
    "build_service_bundle",
    "CORS_ALLOW_HEADERS",
    "cors_headers",
    "make_fastapi_cors_middleware",
]
