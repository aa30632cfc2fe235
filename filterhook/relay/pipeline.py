"""
Notification Pipeline

Owns every relay component and runs one feed event through them:

    parse -> classify -> enrich -> build -> enqueue -> advance cursor

The cursor is saved after the notification is enqueued, not after it is
delivered: a crash in between loses that notification (at-most-once).
"""

import logging
from typing import Any, Dict, Optional

from ..common.config import RelayConfig
from ..common.cursor_store import CursorStore
from ..common.filter_cache import FilterDescriptionCache
from ..common.wiki_client import WikiClient
from .classifier import EventClassifier, ClassificationResult
from .delivery_queue import DeliveryQueue
from .enrichment import EnrichmentPipeline
from .handlers import BaseHandler, RecentChangeHandler
from .notification import Notification, NotificationBuilder

logger = logging.getLogger("filterhook.relay.pipeline")


class NotificationPipeline:
    """
    Per-process relay state.

    Nothing here is module-global; tests build as many pipelines as they need.
    """

    def __init__(
        self,
        handler: BaseHandler,
        classifier: EventClassifier,
        enrichment: EnrichmentPipeline,
        builder: NotificationBuilder,
        queue: DeliveryQueue,
        cursor_store: CursorStore,
        cache: FilterDescriptionCache,
    ):
        self.handler = handler
        self.classifier = classifier
        self.enrichment = enrichment
        self.builder = builder
        self.queue = queue
        self.cursor_store = cursor_store
        self.cache = cache

        self.events_seen = 0
        self.events_accepted = 0

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        wiki_client: Optional[WikiClient] = None,
        queue: Optional[DeliveryQueue] = None,
    ) -> "NotificationPipeline":
        """
        Wire a pipeline from configuration.

        Args:
            config: Loaded configuration
            wiki_client: Query API client to use instead of a new one
            queue: Delivery queue to use instead of a new one

        Returns:
            NotificationPipeline with the cursor already loaded
        """
        cache = FilterDescriptionCache()
        cursor_store = CursorStore(config.stream.cursor_path)
        cursor_store.load()

        # DeliveryQueue defines __len__, so an empty queue is falsy
        if wiki_client is None:
            wiki_client = WikiClient(
                user_agent=config.user_agent,
                timeout=config.http_timeout,
            )
        if queue is None:
            queue = DeliveryQueue(
                webhook_url=config.webhook.url,
                user_agent=config.user_agent,
                drain_interval=config.delivery.drain_interval,
                default_retry_after=config.delivery.default_retry_after,
                timeout=config.http_timeout,
            )

        return cls(
            handler=RecentChangeHandler(),
            classifier=EventClassifier(
                site=config.wiki.site,
                allowed_filters=config.wiki.filters,
                log_type=config.wiki.log_type,
                log_action=config.wiki.log_action,
            ),
            enrichment=EnrichmentPipeline(
                wiki_client,
                cache,
                revision_lookup_delay=config.wiki.revision_lookup_delay,
            ),
            builder=NotificationBuilder(
                username=config.webhook.username,
                avatar_url=config.webhook.avatar_url,
            ),
            queue=queue,
            cursor_store=cursor_store,
            cache=cache,
        )

    async def handle_event(self, raw_data: Dict[str, Any]) -> Optional[Notification]:
        """
        Process one decoded feed payload.

        Args:
            raw_data: Decoded SSE ``data`` object

        Returns:
            The enqueued Notification, or None if the event was rejected
        """
        self.events_seen += 1

        event = await self.handler.parse_event(raw_data)
        if event is None:
            return None

        result: ClassificationResult = self.classifier.classify(
            event, self.cursor_store.position
        )
        if not result.accepted:
            logger.debug("Rejected %s event on %s: %s", event.type, event.wiki, result.reason.value)
            return None

        self.events_accepted += 1
        logger.info(
            "Processing log entry: %s by %s on %s", event.log_id, event.user, event.title
        )

        enriched = await self.enrichment.enrich(event)
        notification = self.builder.build(enriched)
        self.queue.push(notification)

        if event.position is not None:
            self.cursor_store.save(event.position)

        return notification

    @property
    def stats(self) -> Dict[str, Any]:
        """Counters for the status endpoint"""
        position = self.cursor_store.position
        return {
            "events_seen": self.events_seen,
            "events_accepted": self.events_accepted,
            "cached_filters": len(self.cache),
            "cursor": position.to_dict() if position else None,
            "queue": self.queue.stats,
        }

    async def close(self) -> None:
        """Close the HTTP clients owned by the pipeline."""
        await self.enrichment.close()
        await self.queue.close()
