"""
TVmaze API Layer.

This package handles all communication with the TVmaze API.
"""

from .client import TvMazeClient, deserialize_document

__all__ = ["TvMazeClient", "deserialize_document"]
