"""Scan error taxonomy.

Every failure is scoped to one target and returned to the caller as one of
these exceptions. "No match" is not an error: scans return `None` for it.
"""

from __future__ import annotations


class ScanError(Exception):
    """Base class for all scan failures."""


class ProxyConfigError(ScanError):
    """The configured proxy URL is malformed or not `socks5://`."""


class DialError(ScanError):
    """A connection (TCP, UDP, TLS or proxy tunnel) could not be opened."""

    def __init__(self, endpoint: str, reason: str) -> None:
        super().__init__(f"unable to connect to {endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason


class ProbeError(ScanError):
    """A plugin failed while talking to an open connection."""

    def __init__(self, plugin_id: str, endpoint: str, reason: str) -> None:
        super().__init__(f"{plugin_id} failed on {endpoint}: {reason}")
        self.plugin_id = plugin_id
        self.endpoint = endpoint
        self.reason = reason


class ProbeTimeoutError(ProbeError):
    """A plugin did not finish before the probe deadline."""


class RegistryError(ScanError):
    """The plugin registry was modified after initialization."""


class TargetParseError(ScanError, ValueError):
    """A `host:port` string could not be turned into a target."""
