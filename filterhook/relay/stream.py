"""
Stream Supervisor

Keeps one Server-Sent Events subscription to Wikimedia EventStreams open
and hands each decoded event to a registered handler, one at a time.

Reconnect policy:
- clean close or transport error: reopen after ``reconnect_delay`` from the
  most recent event id seen
- HTTP 429 with cooldown enabled: reopen after ``rate_limit_cooldown`` from
  the persisted cursor or the live tail, depending on ``rate_limit_resume``
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from httpx_sse import aconnect_sse, SSEError

from ..common.cursor_store import CursorStore

logger = logging.getLogger("filterhook.relay.stream")

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class StreamRateLimited(Exception):
    """The stream endpoint answered 429 Too Many Requests."""
    pass


class StreamSupervisor:
    """
    Supervised EventStreams subscription.

    Usage:
        supervisor = StreamSupervisor(url, cursor_store, user_agent)
        supervisor.handler = pipeline.handle_event
        supervisor.start()
        ...
        await supervisor.stop()
    """

    def __init__(
        self,
        url: str,
        cursor_store: CursorStore,
        user_agent: str,
        reconnect_delay: float = 1.0,
        cooldown_on_rate_limit: bool = True,
        rate_limit_cooldown: float = 60.0,
        rate_limit_resume: str = "cursor",
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize stream supervisor.

        Args:
            url: EventStreams endpoint
            cursor_store: Source of the initial Last-Event-ID
            user_agent: User-Agent header for the subscription
            reconnect_delay: Seconds before reopening after a close or error
            cooldown_on_rate_limit: Whether a 429 triggers the longer cooldown
            rate_limit_cooldown: Seconds to wait after a 429
            rate_limit_resume: "cursor" or "tail" after a cooldown
            client: Pre-built httpx client (tests inject a MockTransport here)
            sleep: Sleep coroutine for reconnect waits (injected by tests)
        """
        self.url = url
        self.user_agent = user_agent
        self.reconnect_delay = reconnect_delay
        self.cooldown_on_rate_limit = cooldown_on_rate_limit
        self.rate_limit_cooldown = rate_limit_cooldown
        self.rate_limit_resume = rate_limit_resume
        self._cursor_store = cursor_store
        # Streams stay open indefinitely; only connecting is bounded
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
        self._sleep = sleep

        self.handler: Optional[EventHandler] = None

        self._last_event_id: Optional[str] = cursor_store.last_event_id()
        self._connected = False
        self._stopping = False
        self._processing = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def last_event_id(self) -> Optional[str]:
        """Event id the next connection will resume from (None = live tail)"""
        return self._last_event_id

    def start(self) -> asyncio.Task:
        """Run the supervisor loop as a task on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def run(self) -> None:
        """Connect, consume, and reconnect until stopped."""
        while not self._stopping:
            delay = self.reconnect_delay
            try:
                await self.consume()
                if self._stopping:
                    break
                logger.info("Stream closed. Reopening...")
            except StreamRateLimited:
                if self.cooldown_on_rate_limit:
                    delay = self.rate_limit_cooldown
                    self._resume_after_cooldown()
                    logger.warning(
                        "Stream rate limited; cooling down for %ss before reconnecting from %s",
                        delay, self._last_event_id or "the live tail",
                    )
                else:
                    logger.warning("Stream rate limited; reconnecting in %ss", delay)
            except (httpx.HTTPError, SSEError) as e:
                logger.error("Stream error: %s", e)
            except Exception:
                # CancelledError is a BaseException and still ends the loop
                logger.exception("Unexpected stream failure; reconnecting")
            finally:
                self._connected = False

            if self._stopping:
                break
            await self._sleep(delay)

    def _resume_after_cooldown(self) -> None:
        if self.rate_limit_resume == "tail":
            self._last_event_id = None
        else:
            self._last_event_id = self._cursor_store.last_event_id()

    async def consume(self) -> None:
        """
        Hold one connection open and process its events in order.

        Returns when the server closes the stream.

        Raises:
            StreamRateLimited: On HTTP 429
            httpx.HTTPError: On other HTTP or transport failures
            SSEError: If the response is not an event stream
        """
        headers = {"User-Agent": self.user_agent}
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        async with aconnect_sse(self._client, "GET", self.url, headers=headers) as source:
            response = source.response
            if response.status_code == 429:
                raise StreamRateLimited(f"{self.url} returned 429")
            response.raise_for_status()

            self._connected = True
            logger.info("Stream opened")

            async for sse in source.aiter_sse():
                if self._stopping:
                    return
                async with self._processing:
                    await self._dispatch(sse.data)
                if sse.id:
                    self._last_event_id = sse.id

    async def _dispatch(self, data: str) -> None:
        """Decode one message and await the handler."""
        if not data:
            return
        try:
            payload = json.loads(data)
        except ValueError as e:
            logger.warning("Skipping undecodable stream message: %s", e)
            return

        if self.handler is None:
            return
        try:
            await self.handler(payload)
        except Exception:
            logger.exception("Failed to process stream event")

    async def stop(self) -> None:
        """
        Stop the subscription.

        Waits for the event currently being handled, then cancels the
        reader; leaving the SSE context closes the response.
        """
        self._stopping = True
        async with self._processing:
            if self._task is not None and not self._task.done():
                self._task.cancel()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._connected = False
        logger.info("Stream stopped")

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
