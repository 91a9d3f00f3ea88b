"""Data contracts shared by the scheduler, the stores and the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Status recorded when an endpoint could not be reached at all
# (DNS, connect, timeout, malformed response). Never a valid HTTP code.
UNREACHABLE = 0

# Only an exact 200 counts as "up" for aggregation and incident purposes.
SUCCESS_STATUS = 200


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Endpoints + samples ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class MonitoredEndpoint:
    """A registered probe target. ``alias`` is the stable identity."""

    url: str
    alias: str


@dataclass(frozen=True)
class RawSample:
    """One recorded check outcome."""

    alias: str
    observed_at: datetime
    status_code: int

    @property
    def ok(self) -> bool:
        return self.status_code == SUCCESS_STATUS


@dataclass
class ProbeResult:
    """Outcome of one HTTP probe, before it is persisted."""

    alias: str
    url: str
    status_code: int
    latency_ms: float
    message: str = ""
    observed_at: datetime = field(default_factory=utcnow)

    @property
    def reachable(self) -> bool:
        return self.status_code != UNREACHABLE


# ── Derived views ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BucketPoint:
    """Uptime for one aligned bucket.

    ``uptime_pct`` is None when no sample fell in the bucket. A bucket with
    samples but no successes is 0, not None.
    """

    time: datetime
    uptime_pct: int | None


@dataclass(frozen=True)
class Incident:
    """A sample whose status was anything other than 200."""

    time: datetime
    status_code: int


@dataclass(frozen=True)
class UptimeWindow:
    name: str
    bucket_seconds: int
    bucket_count: int


HOURLY = UptimeWindow("hourly", 3600, 24)
DAILY = UptimeWindow("daily", 86400, 30)


# ── Sweep reporting ──────────────────────────────────────────────────────────


@dataclass
class SweepReport:
    """Summary of one pass over every registered endpoint."""

    started_at: datetime
    finished_at: datetime | None = None
    endpoints: int = 0
    recorded: int = 0
    unreachable: int = 0
    write_failures: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_s(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_s": round(self.duration_s, 3),
            "endpoints": self.endpoints,
            "recorded": self.recorded,
            "unreachable": self.unreachable,
            "write_failures": self.write_failures,
            "errors": list(self.errors),
        }
