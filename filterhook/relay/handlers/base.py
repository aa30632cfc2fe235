"""
Base Handler

Abstract base class for feed event handlers.
Provides a common interface for converting feed payloads to RawEvents.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from ...common.cursor_store import StreamPosition


@dataclass(frozen=True)
class RawEvent:
    """
    A feed event as received, reduced to the fields the relay reads.

    ``comment`` holds the log action comment for log events and the edit
    summary otherwise.
    """
    wiki: str
    type: str  # "log", "edit", "new", ...
    title: str
    user: str
    timestamp: int
    domain: str
    log_type: Optional[str] = None
    log_action: Optional[str] = None
    log_id: Optional[int] = None
    filter_id: Optional[str] = None
    comment: Optional[str] = None
    position: Optional[StreamPosition] = None

    @property
    def datetime(self) -> datetime:
        """Event time in UTC"""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


class BaseHandler(ABC):
    """
    Abstract base class for feed handlers.

    Each handler must implement:
    - parse_event: Convert a decoded feed payload to a RawEvent
    """

    def __init__(self, stream_name: str):
        """
        Initialize handler.

        Args:
            stream_name: Name of the feed (e.g., "mediawiki.recentchange")
        """
        self.stream_name = stream_name

    @abstractmethod
    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[RawEvent]:
        """
        Parse a decoded feed payload into a RawEvent.

        Args:
            raw_data: JSON object from the feed

        Returns:
            RawEvent or None if the payload is unusable
        """
        pass
