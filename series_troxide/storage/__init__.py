"""
Storage Layer.

This package handles all data persistence: the configuration file, the
tracked-series datastore, the canonical collection file and the document cache.
"""

from .cache import CacheStore, ResourceIdentifier, ResourceKind
from .config_manager import ConfigManager
from .datastore import Datastore
from .transfer import CollectionTransfer

__all__ = [
    "CacheStore",
    "CollectionTransfer",
    "ConfigManager",
    "Datastore",
    "ResourceIdentifier",
    "ResourceKind",
]
