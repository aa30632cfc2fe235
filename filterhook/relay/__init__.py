"""
Relay - Abuse Filter Hit Notifications

Watches the Wikimedia recent changes feed and relays abuse filter hits on
one wiki to a webhook.

Key Components:
- StreamSupervisor: Resumable EventStreams subscription
- EventClassifier: Keeps filter hits on the watched wiki
- EnrichmentPipeline: Filter description, revision, and diff lookups
- NotificationBuilder: Renders the webhook embed
- DeliveryQueue: Ordered, rate-limit-aware webhook delivery
- NotificationPipeline: Owns the components and the per-event flow

Rules:
1. One event is fully handled before the next is read
2. Delivery order equals acceptance order, even across rate limits
3. The cursor advances only for accepted events, after they are queued
4. Lookup failures degrade the notification; they never drop it
"""

from .classifier import EventClassifier, ClassificationResult, RejectReason
from .enrichment import EnrichmentPipeline, EnrichedEvent
from .notification import NotificationBuilder, Notification, Category
from .delivery_queue import DeliveryQueue
from .stream import StreamSupervisor, StreamRateLimited
from .pipeline import NotificationPipeline

__all__ = [
    "EventClassifier",
    "ClassificationResult",
    "RejectReason",
    "EnrichmentPipeline",
    "EnrichedEvent",
    "NotificationBuilder",
    "Notification",
    "Category",
    "DeliveryQueue",
    "StreamSupervisor",
    "StreamRateLimited",
    "NotificationPipeline",
]
