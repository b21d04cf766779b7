"""Exception types shared across the dashboard."""

from __future__ import annotations


class AgentHudError(Exception):
    pass


class ConfigError(AgentHudError, ValueError):
    """An explicitly requested config file is missing or unreadable."""


class ProviderError(AgentHudError):
    """A data provider could not produce a snapshot (command failed, timed out, bad output)."""

    def __init__(self, message: str, *, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode
