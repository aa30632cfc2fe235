"""
Event Classifier

Decides which feed events become notifications.
First stage of the relay pipeline; pure, no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, FrozenSet

from ..common.cursor_store import StreamPosition
from .handlers.base import RawEvent


class RejectReason(str, Enum):
    """Why an event was not accepted, in evaluation order"""
    WRONG_WIKI = "wrong_wiki"
    NOT_LOG = "not_log"
    NOT_FILTER_HIT = "not_filter_hit"
    MISSING_LOG_PARAMS = "missing_log_params"
    NOT_ALLOWLISTED = "not_allowlisted"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class ClassificationResult:
    """Result of classifying one event"""
    accepted: bool
    reason: Optional[RejectReason] = None


ACCEPTED = ClassificationResult(accepted=True)


class EventClassifier:
    """
    Accepts abuse filter hits on one wiki, optionally limited to an
    allow-list of filter ids.

    Checks, in order:
    1. Site matches the configured wiki
    2. Event is a log entry
    3. Log type/action is the filter hit pair
    4. Log entry id and filter id are present
    5. Filter id is allow-listed (when a list is configured)
    6. Position differs from the last persisted one (replay guard)
    """

    def __init__(
        self,
        site: str = "enwiki",
        allowed_filters: Optional[Iterable[str]] = None,
        log_type: str = "abusefilter",
        log_action: str = "hit",
    ):
        """
        Initialize event classifier.

        Args:
            site: Wiki database name to watch (e.g. "enwiki")
            allowed_filters: Filter ids to relay; empty or None relays all
            log_type: Log type of a filter hit
            log_action: Log action of a filter hit
        """
        self._site = site
        self._allowed: FrozenSet[str] = frozenset(allowed_filters or ())
        self._log_type = log_type
        self._log_action = log_action

    @property
    def site(self) -> str:
        return self._site

    @property
    def allowed_filters(self) -> FrozenSet[str]:
        return self._allowed

    def classify(
        self,
        event: RawEvent,
        last_position: Optional[StreamPosition] = None,
    ) -> ClassificationResult:
        """
        Classify an event.

        Args:
            event: Parsed feed event
            last_position: Last persisted cursor position, if any

        Returns:
            ClassificationResult; rejected results carry the first failed check
        """
        if event.wiki != self._site:
            return ClassificationResult(False, RejectReason.WRONG_WIKI)

        if event.type != "log":
            return ClassificationResult(False, RejectReason.NOT_LOG)

        if event.log_type != self._log_type or event.log_action != self._log_action:
            return ClassificationResult(False, RejectReason.NOT_FILTER_HIT)

        if not event.log_id or not event.filter_id:
            return ClassificationResult(False, RejectReason.MISSING_LOG_PARAMS)

        if self._allowed and event.filter_id not in self._allowed:
            return ClassificationResult(False, RejectReason.NOT_ALLOWLISTED)

        if last_position is not None and event.position == last_position:
            return ClassificationResult(False, RejectReason.ALREADY_PROCESSED)

        return ACCEPTED
