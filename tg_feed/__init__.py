from __future__ import annotations

from .config import config_sha256, load_config, resolve_storage_state
from .config_schema import AppConfig
from .errors import ConfigError, NavigationError, SessionError, TargetError
from .post import UNKNOWN_CHANNEL, ChannelRecord, PostRecord, Reaction, ScrapeResult
from .scrape import ScrapeRequest, scrape_channel

__all__ = [
    "AppConfig",
    "ChannelRecord",
    "ConfigError",
    "NavigationError",
    "PostRecord",
    "Reaction",
    "ScrapeRequest",
    "ScrapeResult",
    "SessionError",
    "TargetError",
    "UNKNOWN_CHANNEL",
    "config_sha256",
    "load_config",
    "resolve_storage_state",
    "scrape_channel",
]
