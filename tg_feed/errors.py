from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class TargetError(ValueError):
    """Raised when a crawl target is not a recognizable channel URL or handle."""


class NavigationError(RuntimeError):
    """Raised when the channel page cannot be reached or never renders."""


class SessionError(RuntimeError):
    """Raised when the controlled browser session fails a command."""


class ExportError(RuntimeError):
    """Raised when writing a scrape result to disk fails."""
