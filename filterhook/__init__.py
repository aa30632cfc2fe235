"""
filterhook

Relays abuse filter hits from the Wikimedia recent changes feed to a
Discord-compatible webhook.

Philosophy:
- One subscription, one destination, processed strictly in feed order
- Enrichment is best-effort: a failed lookup degrades the message, never drops it
- The feed position is persisted so a restart resumes where it left off

Usage:
    from filterhook.common import load_config, CursorStore, WikiClient
    from filterhook.relay import NotificationPipeline, DeliveryQueue, StreamSupervisor
"""

__version__ = "0.1.0"
