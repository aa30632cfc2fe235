"""
Delivery Queue

Ordered, rate-limit-aware webhook delivery.

Notifications are pushed by the pipeline and drained in FIFO order by a
periodic timer. A 429 response pauses delivery for the advertised
``retry_after`` and puts the same notification back at the head, so order
is preserved across rate limits. Any other failure drops the notification.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Optional, Set

import httpx

from .notification import Notification

logger = logging.getLogger("filterhook.relay.delivery")


class DeliveryQueue:
    """
    FIFO webhook delivery queue.

    Usage:
        queue = DeliveryQueue(webhook_url, user_agent)
        queue.start()
        queue.push(notification)
        ...
        await queue.stop(timeout=5.0)
    """

    def __init__(
        self,
        webhook_url: str,
        user_agent: str,
        client: Optional[httpx.AsyncClient] = None,
        drain_interval: float = 0.1,
        default_retry_after: float = 5.0,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize delivery queue.

        Args:
            webhook_url: Destination URL
            user_agent: User-Agent header for every POST
            client: Pre-built httpx client (tests inject a MockTransport here)
            drain_interval: Seconds between scheduled drains
            default_retry_after: Wait used when a 429 body has no usable retry_after
            timeout: Request timeout in seconds
            sleep: Sleep coroutine used for rate-limit waits (injected by tests)
        """
        self.webhook_url = webhook_url
        self.user_agent = user_agent
        self.drain_interval = drain_interval
        self.default_retry_after = default_retry_after
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._sleep = sleep

        self._queue: Deque[Notification] = deque()
        self._draining = False
        self._timer: Optional[asyncio.Task] = None
        self._drain_tasks: Set[asyncio.Task] = set()

        self._delivered = 0
        self._requeued = 0
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def stats(self) -> Dict[str, int]:
        """Queue depth and delivery counters"""
        return {
            "pending": len(self._queue),
            "delivered": self._delivered,
            "requeued": self._requeued,
            "dropped": self._dropped,
        }

    def push(self, notification: Notification) -> None:
        """Append a notification to the tail. Never blocks."""
        self._queue.append(notification)

    async def drain(self) -> None:
        """
        Deliver queued notifications until the queue is empty.

        Returns immediately if another drain is already running. The
        draining flag is cleared only once the queue has been emptied
        (or the drain is cancelled).
        """
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                notification = self._queue.popleft()
                await self._deliver(notification)
        finally:
            self._draining = False

    async def _deliver(self, notification: Notification) -> None:
        """POST one notification; requeue at the head on 429."""
        try:
            response = await self._client.post(
                self.webhook_url,
                json=notification.to_payload(),
                headers={"User-Agent": self.user_agent},
            )
        except httpx.HTTPError as e:
            self._dropped += 1
            logger.error("Failed to send webhook: %s", e)
            return

        if response.is_success:
            self._delivered += 1
            return

        if response.status_code == 429:
            wait = self._retry_after(response)
            logger.warning(
                "Rate limited when sending webhook; waiting %ss before continuing...", wait
            )
            await self._sleep(wait)
            self._queue.appendleft(notification)
            self._requeued += 1
            return

        self._dropped += 1
        logger.error(
            "Failed to send webhook: %s %s %s",
            response.status_code, response.reason_phrase, response.text,
        )

    def _retry_after(self, response: httpx.Response) -> float:
        """Seconds to wait from a 429 body, falling back to the default"""
        try:
            body = response.json()
        except ValueError:
            return self.default_retry_after

        if not isinstance(body, dict):
            return self.default_retry_after

        value = body.get("retry_after")
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            return self.default_retry_after
        return float(value)

    # =========================================================================
    # Timer
    # =========================================================================

    def start(self) -> None:
        """Schedule a drain every ``drain_interval`` seconds on the running loop."""
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.get_running_loop().create_task(self._tick())
        logger.debug("Delivery timer started (interval: %ss)", self.drain_interval)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.drain_interval)
            if self._queue and not self._draining:
                task = asyncio.create_task(self.drain())
                self._drain_tasks.add(task)
                task.add_done_callback(self._drain_tasks.discard)

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the timer and flush the queue within ``timeout`` seconds.

        An in-progress drain is awaited first; anything still queued is
        then drained directly. Whatever is left when the budget runs out
        is discarded.
        """
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        pending = list(self._drain_tasks)
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=timeout)
            for task in not_done:
                task.cancel()
            if not_done:
                await asyncio.gather(*not_done, return_exceptions=True)

        remaining = deadline - loop.time()
        if self._queue and not self._draining and remaining > 0:
            try:
                await asyncio.wait_for(self.drain(), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("Shutdown flush timed out after %ss", timeout)

        if self._queue:
            logger.warning("Discarding %d undelivered notification(s) on shutdown", len(self._queue))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
