"""Tests for the status API and process lifecycle."""

import asyncio
import logging
import signal
import pytest
from unittest.mock import AsyncMock, Mock, patch


WEBHOOK = "https://discord.test/api/webhooks/1/abc"


@pytest.fixture
def config(tmp_path):
    from filterhook.common.config import load_config

    return load_config({
        "WEBHOOK": WEBHOOK,
        "LAST_EVENT_ID_FILE": str(tmp_path / "lastEventId.txt"),
        "FILTERS": "100,12",
    })


class TestStatusApi:
    @pytest.fixture
    def client(self, config):
        from fastapi.testclient import TestClient
        from filterhook.relay.pipeline import NotificationPipeline
        from filterhook.relay.server import create_app

        pipeline = NotificationPipeline.from_config(config)
        supervisor = Mock(connected=True)
        return TestClient(create_app(pipeline, supervisor))

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "service": "filterhook",
            "stream_connected": True,
        }

    def test_stats(self, client):
        response = client.get("/stats")
        data = response.json()

        assert response.status_code == 200
        assert data["service"] == "filterhook"
        assert data["monitored_filters"] == ["100", "12"]
        assert data["events_seen"] == 0
        assert data["cursor"] is None
        assert data["queue"] == {"pending": 0, "delivered": 0, "requeued": 0, "dropped": 0}

    def test_health_without_supervisor(self, config):
        from fastapi.testclient import TestClient
        from filterhook.relay.pipeline import NotificationPipeline
        from filterhook.relay.server import create_app

        client = TestClient(create_app(NotificationPipeline.from_config(config)))

        assert client.get("/health").json()["stream_connected"] is False


class TestMain:
    def test_missing_webhook_exits_1(self, caplog):
        from filterhook.common.config import ConfigError
        from filterhook.relay.server import main

        error = ConfigError("No webhook URL provided! Set the WEBHOOK environment variable.")
        with patch("filterhook.relay.server.load_config", side_effect=error), \
             patch("filterhook.relay.server.asyncio.run") as run, \
             caplog.at_level(logging.ERROR, logger="filterhook.relay.server"):
            assert main() == 1

        run.assert_not_called()
        assert "No webhook URL provided" in caplog.text

    def test_graceful_run_exits_0(self, config):
        from filterhook.relay.server import main

        with patch("filterhook.relay.server.load_config", return_value=config), \
             patch("filterhook.relay.server.asyncio.run") as run:
            assert main() == 0

        run.assert_called_once()
        # asyncio.run is mocked, so close the coroutine it was handed
        run.call_args.args[0].close()


class TestRun:
    @pytest.mark.asyncio
    async def test_signal_shuts_down_in_order(self, config):
        from filterhook.relay.server import run

        calls = []
        supervisor = Mock()
        supervisor.start = Mock(side_effect=lambda: calls.append("start"))
        supervisor.stop = AsyncMock(side_effect=lambda: calls.append("stop"))
        supervisor.close = AsyncMock(side_effect=lambda: calls.append("close"))

        with patch("filterhook.relay.server.StreamSupervisor", return_value=supervisor):
            task = asyncio.create_task(run(config))
            await asyncio.sleep(0.05)
            assert calls == ["start"]

            signal.raise_signal(signal.SIGTERM)
            await asyncio.wait_for(task, timeout=2.0)

        assert calls == ["start", "stop", "close"]
        assert supervisor.handler is not None
