"""Error types raised inside the scan engine.

None of these escape a scan cycle: the orchestrator converts them into
entries of ``ScanResult.errors`` or skips the offending item.  Only
``ConfigurationInvalid`` reaches callers, from ``set_config``.
"""

from typing import Optional


class ArbScanError(Exception):
    """Base class for engine errors."""

    pass


class UpstreamUnavailable(ArbScanError):
    """The feed or price source timed out or returned an error."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source


class MalformedInput(ArbScanError):
    """An event or market is missing the fields needed to price it."""

    def __init__(self, message: str, item_id: str = ""):
        super().__init__(message)
        self.item_id = item_id


class ConfigurationInvalid(ArbScanError, ValueError):
    """A configuration update carried unknown keys or out-of-range values."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []
