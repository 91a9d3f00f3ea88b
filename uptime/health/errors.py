"""Error kinds for the probe / write / read paths.

Write-path errors (ProbeFailure, StoreWriteFailure, EndpointSourceFailure) are
handled inside the scheduler and only show up in logs. StoreReadFailure is
raised to the caller of the aggregator / incident extractor.
"""

from __future__ import annotations


class UptimeError(Exception):
    """Base class for all uptime monitor errors."""


class ProbeFailure(UptimeError):
    """Raised when an endpoint could not be reached (network, DNS, timeout)."""

    def __init__(self, url: str, cause: str) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Probe of {url} failed: {cause}")


class StoreWriteFailure(UptimeError):
    """Raised when a write (recording a sample, removing an endpoint) failed."""

    def __init__(self, alias: str, cause: Exception | str, operation: str = "record sample") -> None:
        self.alias = alias
        self.cause = cause
        self.operation = operation
        super().__init__(f"Could not {operation} for '{alias}': {cause}")


class StoreReadFailure(UptimeError):
    """Raised when an aggregation or incident query failed."""

    def __init__(self, operation: str, cause: Exception | str, alias: str | None = None) -> None:
        self.operation = operation
        self.alias = alias
        self.cause = cause
        target = f" for '{alias}'" if alias else ""
        super().__init__(f"SQL Error during {operation}{target}: {cause}")


class EndpointSourceFailure(UptimeError):
    """Raised when the list of monitored endpoints could not be read."""

    def __init__(self, cause: Exception | str) -> None:
        self.cause = cause
        super().__init__(f"Could not list endpoints: {cause}")
