"""
Recent Changes Handler

Converts ``mediawiki.recentchange`` payloads from Wikimedia EventStreams
into RawEvents.
"""

import logging
from typing import Optional, Dict, Any

from ...common.cursor_store import StreamPosition
from .base import BaseHandler, RawEvent

logger = logging.getLogger("filterhook.relay.handlers.recentchange")


class RecentChangeHandler(BaseHandler):
    """
    Handler for the ``mediawiki.recentchange`` stream.

    Processes every change type; deciding what is relevant is the
    classifier's job. Payloads without ``meta.domain`` cannot be linked
    back to a wiki and are dropped here.
    """

    def __init__(self):
        super().__init__("mediawiki.recentchange")

    async def parse_event(self, raw_data: Dict[str, Any]) -> Optional[RawEvent]:
        """
        Parse a recent change payload into a RawEvent.

        Args:
            raw_data: Decoded SSE ``data`` object

        Returns:
            RawEvent or None if the payload is unusable
        """
        if not isinstance(raw_data, dict):
            return None

        meta = raw_data.get("meta") or {}
        domain = meta.get("domain")
        if not domain:
            logger.debug("Skipping payload without meta.domain")
            return None

        event_type = raw_data.get("type", "")
        log_params = raw_data.get("log_params")
        # log_params is a list for some log types
        if not isinstance(log_params, dict):
            log_params = {}

        comment_key = "log_action_comment" if event_type == "log" else "comment"

        return RawEvent(
            wiki=raw_data.get("wiki", ""),
            type=event_type,
            title=raw_data.get("title", ""),
            user=raw_data.get("user", ""),
            timestamp=self._parse_timestamp(raw_data.get("timestamp")),
            domain=domain,
            log_type=raw_data.get("log_type"),
            log_action=raw_data.get("log_action"),
            log_id=self._parse_log_id(log_params.get("log")),
            filter_id=self._parse_filter_id(log_params.get("filter")),
            comment=raw_data.get(comment_key),
            position=self._parse_position(meta),
        )

    def _parse_timestamp(self, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    def _parse_log_id(self, value: Any) -> Optional[int]:
        """Abuse log ids arrive as ints or numeric strings"""
        if value in (None, ""):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def _parse_filter_id(self, value: Any) -> Optional[str]:
        """Filter ids stay strings: global filters look like "global-12"."""
        if value in (None, ""):
            return None
        return str(value)

    def _parse_position(self, meta: Dict[str, Any]) -> Optional[StreamPosition]:
        try:
            return StreamPosition.from_dict(meta)
        except (KeyError, TypeError, ValueError):
            return None
