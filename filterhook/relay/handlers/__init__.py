"""
Feed Handlers

Handlers convert decoded feed payloads to a common RawEvent format.

Available Handlers:
- RecentChangeHandler: Wikimedia EventStreams mediawiki.recentchange
"""

from .base import BaseHandler, RawEvent
from .recentchange import RecentChangeHandler

__all__ = [
    "BaseHandler",
    "RawEvent",
    "RecentChangeHandler",
]
