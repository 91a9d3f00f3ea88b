"""Shared test fixtures."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from uptime.health.aggregator import align_to_bucket
from uptime.health.errors import StoreReadFailure, StoreWriteFailure
from uptime.health.models import (
    SUCCESS_STATUS,
    BucketPoint,
    Incident,
    MonitoredEndpoint,
    ProbeResult,
    RawSample,
    utcnow,
)
from uptime.storage.endpoints import EndpointRegistry
from uptime.storage.samples import SampleStore

# 14:37:12 UTC, mid-hour so hour and day truncation both do something.
NOW = datetime(2025, 6, 15, 14, 37, 12, tzinfo=timezone.utc)


class FakeSampleStore:
    """In-memory SampleWriter + SampleReader."""

    def __init__(self) -> None:
        self.samples: list[RawSample] = []
        self.fail_reads = False
        self.fail_writes_for: set[str] = set()
        self.last_now: datetime | None = None

    def record_sample(self, alias: str, status_code: int, observed_at: datetime | None = None) -> None:
        if alias in self.fail_writes_for:
            raise StoreWriteFailure(alias, "disk I/O error")
        self.samples.append(RawSample(alias=alias, observed_at=observed_at or utcnow(), status_code=status_code))

    def bucketed_uptime(
        self, alias: str, bucket_seconds: int, limit: int, now: datetime | None = None,
    ) -> list[BucketPoint]:
        self.last_now = now
        if self.fail_reads:
            raise StoreReadFailure("bucketed uptime query", "database is locked", alias=alias)
        groups: dict[datetime, list[RawSample]] = defaultdict(list)
        for s in self.samples:
            if s.alias == alias:
                groups[align_to_bucket(s.observed_at, bucket_seconds)].append(s)
        rows = [
            BucketPoint(time=t, uptime_pct=sum(1 for s in g if s.ok) * 100 // len(g))
            for t, g in sorted(groups.items())
        ]
        return rows[-limit:]

    def failures(self, alias: str) -> list[Incident]:
        if self.fail_reads:
            raise StoreReadFailure("incident query", "database is locked", alias=alias)
        return [
            Incident(time=s.observed_at, status_code=s.status_code)
            for s in sorted(self.samples, key=lambda s: s.observed_at)
            if s.alias == alias and s.status_code != SUCCESS_STATUS
        ]


class FakeEndpointSource:
    def __init__(self, endpoints: list[MonitoredEndpoint] | None = None) -> None:
        self.endpoints = list(endpoints or [])
        self.calls = 0

    def list_endpoints(self) -> list[MonitoredEndpoint]:
        self.calls += 1
        return list(self.endpoints)


def make_probe(statuses: dict[str, int], start: datetime = NOW):
    """Probe returning a fixed status per alias, observed_at advancing 1s per call."""
    calls = {"n": 0}

    def probe(endpoint: MonitoredEndpoint, timeout_ms: int) -> ProbeResult:
        calls["n"] += 1
        return ProbeResult(
            alias=endpoint.alias, url=endpoint.url,
            status_code=statuses[endpoint.alias], latency_ms=1.0,
            observed_at=start + timedelta(seconds=calls["n"]),
        )

    return probe


@pytest.fixture
def fake_store() -> FakeSampleStore:
    return FakeSampleStore()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_uptime.db"


@pytest.fixture
def sample_store(db_path: Path) -> SampleStore:
    return SampleStore(db_path)


@pytest.fixture
def registry(db_path: Path) -> EndpointRegistry:
    return EndpointRegistry(db_path)
