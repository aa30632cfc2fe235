"""
Relay Server

Process entry point: wires the relay from configuration, runs the stream
supervisor and delivery timer, and optionally serves a small status API.

Endpoints (when STATUS_PORT is set):
- GET /health: Health check
- GET /stats: Queue depth, counters, and the current cursor

Lifecycle:
1. Load configuration (exit 1 if the webhook is missing or a value is invalid)
2. Build the pipeline and load the saved cursor
3. Start the delivery timer, status server, and stream supervisor
4. On SIGINT/SIGTERM: stop the stream, flush the queue (bounded), exit 0
"""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .. import __version__
from ..common.config import load_config, RelayConfig, ConfigError
from .pipeline import NotificationPipeline
from .stream import StreamSupervisor

logger = logging.getLogger("filterhook.relay.server")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# =============================================================================
# Status API
# =============================================================================

def create_app(
    pipeline: NotificationPipeline,
    supervisor: Optional[StreamSupervisor] = None,
) -> FastAPI:
    """
    Build the status API for a running relay.

    Args:
        pipeline: Pipeline whose counters are reported
        supervisor: Stream supervisor, for the connection flag

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="filterhook",
        description="Abuse filter hit relay status",
        version=__version__,
    )

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "filterhook",
            "stream_connected": supervisor.connected if supervisor else False,
        }

    @app.get("/stats")
    async def get_stats():
        """Get relay statistics"""
        return {
            "service": "filterhook",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "monitored_filters": sorted(pipeline.classifier.allowed_filters) or "all",
            **pipeline.stats,
        }

    return app


def _status_server(app: FastAPI, config: RelayConfig) -> uvicorn.Server:
    server_config = uvicorn.Config(
        app,
        host=config.status.host,
        port=config.status.port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(server_config)
    # Signals are handled by the relay, not uvicorn
    server.install_signal_handlers = lambda: None
    return server


# =============================================================================
# Lifecycle
# =============================================================================

async def run(config: RelayConfig) -> None:
    """
    Run the relay until SIGINT or SIGTERM.

    Args:
        config: Loaded configuration
    """
    if config.wiki.filters:
        logger.info("Monitoring filters: %s", ", ".join(config.wiki.filters))
    else:
        logger.info("Monitoring all filters on %s", config.wiki.site)

    pipeline = NotificationPipeline.from_config(config)
    supervisor = StreamSupervisor(
        url=config.stream.url,
        cursor_store=pipeline.cursor_store,
        user_agent=config.user_agent,
        reconnect_delay=config.stream.reconnect_delay,
        cooldown_on_rate_limit=config.stream.cooldown_on_rate_limit,
        rate_limit_cooldown=config.stream.rate_limit_cooldown,
        rate_limit_resume=config.stream.rate_limit_resume,
    )
    supervisor.handler = pipeline.handle_event

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _on_signal, sig, shutdown)

    pipeline.queue.start()

    status_server: Optional[uvicorn.Server] = None
    status_task: Optional[asyncio.Task] = None
    if config.status.port is not None:
        status_server = _status_server(create_app(pipeline, supervisor), config)
        status_task = asyncio.create_task(status_server.serve())
        logger.info("Status endpoint on %s:%s", config.status.host, config.status.port)

    supervisor.start()

    try:
        await shutdown.wait()
    finally:
        logger.info("Closing stream...")
        await supervisor.stop()
        await pipeline.queue.stop(timeout=config.delivery.shutdown_timeout)

        if status_server is not None and status_task is not None:
            status_server.should_exit = True
            await status_task

        await supervisor.close()
        await pipeline.close()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        logger.info("Stream closed. Exiting...")


def _on_signal(sig: signal.Signals, shutdown: asyncio.Event) -> None:
    logger.info("Caught %s; closing stream...", sig.name)
    shutdown.set()


def main() -> int:
    """
    Console entry point.

    Returns:
        Process exit code
    """
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        config = load_config()
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    logging.getLogger().setLevel(config.log_level)

    asyncio.run(run(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
