"""
Cursor Store

Persists the position of the last processed feed event so a restart resumes
from it instead of the live tail.

The file holds a one-element JSON list, the same shape EventStreams accepts
as a ``Last-Event-ID``:

    [{"topic": "eqiad.mediawiki.recentchange", "partition": 0, "offset": 123}]
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any

logger = logging.getLogger("filterhook.common.cursor_store")


@dataclass(frozen=True)
class StreamPosition:
    """A point in the feed, ordered within one (topic, partition)"""
    topic: str
    partition: int
    offset: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamPosition":
        """Build from a ``{topic, partition, offset}`` mapping.

        Raises:
            KeyError, TypeError, ValueError: If a field is missing or malformed
        """
        return cls(
            topic=str(data["topic"]),
            partition=int(data["partition"]),
            offset=int(data["offset"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"topic": self.topic, "partition": self.partition, "offset": self.offset}


class CursorStore:
    """
    File-backed store for the last processed StreamPosition.

    Failures never propagate: an unreadable file means "start from the live
    tail", and a failed write only risks re-delivery after a restart.
    """

    def __init__(self, path: Path):
        """
        Initialize cursor store.

        Args:
            path: Cursor file location
        """
        self._path = Path(path)
        self._position: Optional[StreamPosition] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def position(self) -> Optional[StreamPosition]:
        """Last loaded or saved position (in memory, even if the write failed)"""
        return self._position

    def load(self) -> Optional[StreamPosition]:
        """
        Read the persisted position.

        Returns:
            StreamPosition, or None if the file is absent or unusable
        """
        if not self._path.exists():
            logger.info("No saved cursor at %s; starting from the live tail", self._path)
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8").strip())
            position = StreamPosition.from_dict(data[0])
        except (OSError, json.JSONDecodeError, IndexError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable cursor file %s: %s", self._path, e)
            return None

        self._position = position
        logger.info("Using saved last event ID: %s", self.last_event_id())
        return position

    def save(self, position: StreamPosition) -> bool:
        """
        Persist a position, replacing the previous one.

        Args:
            position: Position of the event that was just processed

        Returns:
            True if the file was written
        """
        self._position = position
        payload = json.dumps([position.to_dict()])

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self._path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save last event ID: %s", e)
            return False

        return True

    def last_event_id(self) -> Optional[str]:
        """The current position formatted as an SSE Last-Event-ID header value"""
        if self._position is None:
            return None
        return json.dumps([self._position.to_dict()])
