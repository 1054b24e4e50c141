"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: configuration, the tracked-series collection,
the TVmaze documents and cache statistics.
"""

from .config import AppConfig
from .series import CURRENT_DATA_VERSION, AddResult, Season, Series, SeriesCollection
from .stats import CacheStats

__all__ = [
    "CURRENT_DATA_VERSION",
    "AddResult",
    "AppConfig",
    "CacheStats",
    "Season",
    "Series",
    "SeriesCollection",
]
