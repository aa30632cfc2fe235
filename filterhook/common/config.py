"""
Configuration Management for filterhook

Loads configuration from environment variables. A ``.env`` file in the
working directory is read first so local runs don't need exported variables.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Mapping

import httpx
from dotenv import load_dotenv, find_dotenv

from .. import __version__


DEFAULT_STREAM_URL = "https://stream.wikimedia.org/v2/stream/recentchange"
DEFAULT_CURSOR_FILENAME = "lastEventId.txt"
DEFAULT_USERNAME = "English Wikipedia"
DEFAULT_AVATAR_URL = (
    "https://upload.wikimedia.org/wikipedia/en/thumb/8/80/"
    "Wikipedia-logo-v2.svg/263px-Wikipedia-logo-v2.svg.png"
)
DEFAULT_USER_AGENT = (
    f"filterhook/{__version__} "
    "(https://github.com/filterhook/filterhook) "
    f"httpx/{httpx.__version__}"
)

RESUME_MODES = ("cursor", "tail")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Required configuration is missing or malformed."""
    pass


@dataclass
class WebhookConfig:
    """Delivery target configuration"""
    url: str = ""
    username: str = DEFAULT_USERNAME
    avatar_url: str = DEFAULT_AVATAR_URL


@dataclass
class StreamConfig:
    """Upstream event feed configuration"""
    url: str = DEFAULT_STREAM_URL
    cursor_path: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_CURSOR_FILENAME)
    reconnect_delay: float = 1.0
    cooldown_on_rate_limit: bool = True
    rate_limit_cooldown: float = 60.0
    rate_limit_resume: str = "cursor"  # "cursor" or "tail"


@dataclass
class WikiConfig:
    """Target wiki and filter selection"""
    site: str = "enwiki"
    log_type: str = "abusefilter"
    log_action: str = "hit"
    filters: List[str] = field(default_factory=list)  # empty = all filters
    revision_lookup_delay: float = 2.0


@dataclass
class DeliveryConfig:
    """Delivery queue timing"""
    drain_interval: float = 0.1
    default_retry_after: float = 5.0
    shutdown_timeout: float = 5.0


@dataclass
class StatusConfig:
    """Optional status endpoint"""
    port: Optional[int] = None  # None = disabled
    host: str = "0.0.0.0"


@dataclass
class RelayConfig:
    """Main filterhook configuration"""
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    wiki: WikiConfig = field(default_factory=WikiConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    status: StatusConfig = field(default_factory=StatusConfig)
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = 30.0
    log_level: str = "INFO"


def parse_filter_list(raw: Optional[str]) -> List[str]:
    """Split a comma-separated filter allow-list, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative, got {value!r}")
    return parsed


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_stream_config(env: Mapping[str, str]) -> StreamConfig:
    """Parse stream settings from the environment"""
    resume = (env.get("STREAM_RATE_LIMIT_RESUME") or "cursor").strip().lower()
    if resume not in RESUME_MODES:
        raise ConfigError(
            f"STREAM_RATE_LIMIT_RESUME must be one of {', '.join(RESUME_MODES)}, got {resume!r}"
        )

    cursor_file = env.get("LAST_EVENT_ID_FILE")
    return StreamConfig(
        url=env.get("STREAM_URL") or DEFAULT_STREAM_URL,
        cursor_path=Path(cursor_file) if cursor_file else Path.cwd() / DEFAULT_CURSOR_FILENAME,
        reconnect_delay=_float(env, "STREAM_RECONNECT_DELAY", 1.0),
        cooldown_on_rate_limit=_bool(env, "STREAM_COOLDOWN_ON_RATE_LIMIT", True),
        rate_limit_cooldown=_float(env, "STREAM_RATE_LIMIT_COOLDOWN", 60.0),
        rate_limit_resume=resume,
    )


def _parse_wiki_config(env: Mapping[str, str]) -> WikiConfig:
    """Parse target wiki settings from the environment"""
    return WikiConfig(
        site=env.get("WIKI") or "enwiki",
        filters=parse_filter_list(env.get("FILTERS")),
        revision_lookup_delay=_float(env, "REVISION_LOOKUP_DELAY", 2.0),
    )


def _parse_delivery_config(env: Mapping[str, str]) -> DeliveryConfig:
    """Parse delivery queue timing from the environment"""
    interval = _float(env, "DRAIN_INTERVAL", 0.1)
    if interval == 0:
        raise ConfigError("DRAIN_INTERVAL must be greater than zero")
    return DeliveryConfig(
        drain_interval=interval,
        default_retry_after=_float(env, "RATE_LIMIT_DEFAULT_WAIT", 5.0),
        shutdown_timeout=_float(env, "SHUTDOWN_DRAIN_TIMEOUT", 5.0),
    )


def _parse_status_config(env: Mapping[str, str]) -> StatusConfig:
    """Parse the optional status endpoint settings"""
    raw_port = env.get("STATUS_PORT")
    if not raw_port:
        return StatusConfig()
    try:
        port = int(raw_port)
    except ValueError:
        raise ConfigError(f"STATUS_PORT must be an integer, got {raw_port!r}")
    return StatusConfig(port=port, host=env.get("STATUS_HOST") or "0.0.0.0")


def load_config(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> RelayConfig:
    """
    Load configuration from environment variables.

    Priority (highest to lowest):
    1. Process environment (or the ``env`` mapping, when given)
    2. ``.env`` file in the working directory
    3. Default values

    Args:
        env: Mapping to read instead of ``os.environ`` (tests)
        dotenv: Whether to read ``.env`` before consulting the environment

    Returns:
        Populated RelayConfig

    Raises:
        ConfigError: If WEBHOOK is missing or a value cannot be parsed
    """
    if env is None:
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    webhook_url = (env.get("WEBHOOK") or "").strip()
    if not webhook_url:
        raise ConfigError("No webhook URL provided! Set the WEBHOOK environment variable.")

    log_level = (env.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    config = RelayConfig(
        webhook=WebhookConfig(
            url=webhook_url,
            username=env.get("WEBHOOK_USERNAME") or DEFAULT_USERNAME,
            avatar_url=env.get("WEBHOOK_AVATAR_URL") or DEFAULT_AVATAR_URL,
        ),
        stream=_parse_stream_config(env),
        wiki=_parse_wiki_config(env),
        delivery=_parse_delivery_config(env),
        status=_parse_status_config(env),
        user_agent=env.get("USER_AGENT") or DEFAULT_USER_AGENT,
        http_timeout=_float(env, "HTTP_TIMEOUT", 30.0),
        log_level=log_level,
    )

    return config
