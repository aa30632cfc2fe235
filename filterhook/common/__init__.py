"""
filterhook Common Module

Shared infrastructure for the relay: configuration, cursor persistence,
the filter description cache, and the wiki query API client.
"""

from .config import RelayConfig, ConfigError, load_config
from .cursor_store import CursorStore, StreamPosition
from .filter_cache import FilterDescriptionCache
from .wiki_client import WikiClient, WikiApiError, FilterNotFound, RevisionDiff

__all__ = [
    "RelayConfig",
    "ConfigError",
    "load_config",
    "CursorStore",
    "StreamPosition",
    "FilterDescriptionCache",
    "WikiClient",
    "WikiApiError",
    "FilterNotFound",
    "RevisionDiff",
]
