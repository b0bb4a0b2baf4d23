"""
kpiboard: semantic aggregation layer for BI dashboards.

Boards own a semantic model (metrics, dimensions, glossary). Aggregate
queries and dashboard widgets are expressed against that model.
"""

from .config import KpiboardConfig

__version__ = "0.1.0"

__all__ = ["KpiboardConfig", "__version__"]
