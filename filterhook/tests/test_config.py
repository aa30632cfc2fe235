"""Tests for environment configuration loading."""

import os
import pytest
from pathlib import Path
from unittest.mock import patch


WEBHOOK = "https://discord.com/api/webhooks/1/abc"


class TestLoadConfig:
    def test_missing_webhook_raises(self):
        from filterhook.common.config import load_config, ConfigError

        with pytest.raises(ConfigError, match="WEBHOOK"):
            load_config({})

    def test_blank_webhook_raises(self):
        from filterhook.common.config import load_config, ConfigError

        with pytest.raises(ConfigError):
            load_config({"WEBHOOK": "   "})

    def test_defaults(self):
        from filterhook.common.config import (
            load_config, DEFAULT_STREAM_URL, DEFAULT_USERNAME, DEFAULT_USER_AGENT,
        )
        cfg = load_config({"WEBHOOK": WEBHOOK})

        assert cfg.webhook.url == WEBHOOK
        assert cfg.webhook.username == DEFAULT_USERNAME == "English Wikipedia"
        assert cfg.stream.url == DEFAULT_STREAM_URL
        assert cfg.stream.cursor_path == Path.cwd() / "lastEventId.txt"
        assert cfg.stream.reconnect_delay == 1.0
        assert cfg.stream.cooldown_on_rate_limit is True
        assert cfg.stream.rate_limit_cooldown == 60.0
        assert cfg.stream.rate_limit_resume == "cursor"
        assert cfg.wiki.site == "enwiki"
        assert cfg.wiki.filters == []
        assert cfg.wiki.revision_lookup_delay == 2.0
        assert cfg.delivery.drain_interval == 0.1
        assert cfg.delivery.default_retry_after == 5.0
        assert cfg.status.port is None
        assert cfg.user_agent == DEFAULT_USER_AGENT
        assert cfg.log_level == "INFO"

    def test_env_overrides(self, tmp_path):
        from filterhook.common.config import load_config
        cursor = tmp_path / "cursor.json"
        env = {
            "WEBHOOK": WEBHOOK,
            "FILTERS": "12, 100,,global-3 ",
            "USER_AGENT": "TestBot/1.0",
            "LAST_EVENT_ID_FILE": str(cursor),
            "WIKI": "dewiki",
            "STREAM_RATE_LIMIT_RESUME": "TAIL",
            "STREAM_COOLDOWN_ON_RATE_LIMIT": "no",
            "REVISION_LOOKUP_DELAY": "0",
            "STATUS_PORT": "8080",
            "LOG_LEVEL": "debug",
        }
        cfg = load_config(env)

        assert cfg.wiki.filters == ["12", "100", "global-3"]
        assert cfg.user_agent == "TestBot/1.0"
        assert cfg.stream.cursor_path == cursor
        assert cfg.wiki.site == "dewiki"
        assert cfg.stream.rate_limit_resume == "tail"
        assert cfg.stream.cooldown_on_rate_limit is False
        assert cfg.wiki.revision_lookup_delay == 0.0
        assert cfg.status.port == 8080
        assert cfg.log_level == "DEBUG"

    def test_blank_resume_mode_uses_default(self):
        from filterhook.common.config import load_config
        cfg = load_config({"WEBHOOK": WEBHOOK, "STREAM_RATE_LIMIT_RESUME": ""})

        assert cfg.stream.rate_limit_resume == "cursor"

    @pytest.mark.parametrize("name,value", [
        ("HTTP_TIMEOUT", "soon"),
        ("STREAM_RECONNECT_DELAY", "-1"),
        ("DRAIN_INTERVAL", "0"),
        ("STREAM_RATE_LIMIT_RESUME", "rewind"),
        ("STREAM_COOLDOWN_ON_RATE_LIMIT", "maybe"),
        ("STATUS_PORT", "http"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values_raise(self, name, value):
        from filterhook.common.config import load_config, ConfigError

        with pytest.raises(ConfigError, match=name):
            load_config({"WEBHOOK": WEBHOOK, name: value})

    def test_reads_process_environment(self):
        from filterhook.common.config import load_config

        env = {"WEBHOOK": WEBHOOK, "FILTERS": "7"}
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(dotenv=False)

        assert cfg.wiki.filters == ["7"]

    def test_dotenv_is_loaded(self, tmp_path, monkeypatch):
        from filterhook.common.config import load_config

        (tmp_path / ".env").write_text(f"WEBHOOK={WEBHOOK}\nWIKI=frwiki\n")
        monkeypatch.chdir(tmp_path)
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.webhook.url == WEBHOOK
        assert cfg.wiki.site == "frwiki"


class TestParseFilterList:
    def test_empty(self):
        from filterhook.common.config import parse_filter_list
        assert parse_filter_list(None) == []
        assert parse_filter_list("") == []

    def test_strips_and_drops_blanks(self):
        from filterhook.common.config import parse_filter_list
        assert parse_filter_list(" 1 ,2,, 3") == ["1", "2", "3"]
