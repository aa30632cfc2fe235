"""
Enrichment Pipeline

Augments an accepted event with facts from the wiki's query API.
Second stage of the relay pipeline.

Steps run in order and each degrades independently:
1. Filter description (cached)  -> placeholder text on failure
2. Revision id of the log entry -> None on failure; step 3 skipped
3. Diff against the parent       -> delta/comment left empty on failure
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..common.filter_cache import FilterDescriptionCache
from ..common.wiki_client import WikiClient, WikiApiError, FilterNotFound, RevisionDiff
from .handlers.base import RawEvent

logger = logging.getLogger("filterhook.relay.enrichment")

PRIVATE_FILTER_DESCRIPTION = "Unknown (could not find abuse filter; is it private?)"
FAILED_FILTER_DESCRIPTION = "Unknown (failed to get abuse filter description)"


@dataclass
class EnrichedEvent:
    """A RawEvent plus everything the lookups could find out about it"""
    event: RawEvent
    filter_description: str
    revision_id: Optional[int] = None
    byte_delta: Optional[int] = None
    edit_comment: Optional[str] = None
    new_page: bool = False


class EnrichmentPipeline:
    """
    Runs the per-event lookups sequentially.

    ``enrich`` never raises for lookup failures: every step logs and falls
    back so that one flaky API call costs detail, not the notification.
    """

    def __init__(
        self,
        wiki_client: WikiClient,
        cache: FilterDescriptionCache,
        revision_lookup_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize enrichment pipeline.

        Args:
            wiki_client: Query API client
            cache: Shared filter description cache
            revision_lookup_delay: Seconds to wait before resolving the
                revision id; the abuse log API lags the feed slightly
            sleep: Sleep coroutine (injected by tests)
        """
        self._wiki = wiki_client
        self._cache = cache
        self._revision_lookup_delay = revision_lookup_delay
        self._sleep = sleep

    async def enrich(self, event: RawEvent) -> EnrichedEvent:
        """
        Enrich an accepted event.

        Args:
            event: Event that passed the classifier

        Returns:
            EnrichedEvent with lookups filled in where they succeeded
        """
        description = await self.describe_filter(event)
        enriched = EnrichedEvent(event=event, filter_description=description)

        enriched.revision_id = await self.resolve_revision(event)
        if enriched.revision_id is None:
            return enriched

        diff = await self.diff_revision(event, enriched.revision_id)
        if diff is not None:
            enriched.byte_delta = diff.byte_delta
            enriched.edit_comment = diff.edit_comment
            enriched.new_page = diff.new_page

        return enriched

    async def describe_filter(self, event: RawEvent) -> str:
        """Step 1: cached filter description or a placeholder"""
        try:
            filter_id = int(event.filter_id)
        except (TypeError, ValueError):
            # Global filters ("global-12") are not queryable on the local wiki
            logger.warning("Filter id %r is not a local filter; skipping lookup", event.filter_id)
            return PRIVATE_FILTER_DESCRIPTION

        cached = self._cache.get(filter_id)
        if cached is not None:
            return cached

        try:
            description = await self._wiki.get_filter_description(event.domain, filter_id)
        except FilterNotFound as e:
            logger.error("Could not find abuse filter description for ID %s: %s", filter_id, e)
            return PRIVATE_FILTER_DESCRIPTION
        except WikiApiError as e:
            logger.error("Failed to get abuse filter description for ID %s: %s", filter_id, e)
            return FAILED_FILTER_DESCRIPTION

        return self._cache.put(filter_id, description)

    async def resolve_revision(self, event: RawEvent) -> Optional[int]:
        """Step 2: revision id saved by the filtered edit, if any"""
        if self._revision_lookup_delay > 0:
            await self._sleep(self._revision_lookup_delay)

        try:
            revision_id = await self._wiki.get_log_revision(event.domain, event.log_id)
        except WikiApiError as e:
            logger.error("Failed to get revision ID for log entry %s: %s", event.log_id, e)
            return None

        if revision_id is None:
            logger.info("Log entry %s has no associated revision", event.log_id)
        return revision_id

    async def diff_revision(self, event: RawEvent, revision_id: int) -> Optional[RevisionDiff]:
        """Step 3: size delta and edit summary against the parent revision"""
        try:
            return await self._wiki.compare_with_previous(event.domain, revision_id)
        except WikiApiError as e:
            logger.error("Failed to compare revision %s: %s", revision_id, e)
            return None

    async def close(self) -> None:
        """Close the wiki client."""
        await self._wiki.close()
