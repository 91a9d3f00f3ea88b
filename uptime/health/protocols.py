"""Storage seams consumed by the scheduler, aggregator and incident extractor."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import BucketPoint, Incident, MonitoredEndpoint


@runtime_checkable
class EndpointSource(Protocol):
    """Supplies the endpoints to probe on each sweep."""

    def list_endpoints(self) -> Sequence[MonitoredEndpoint]:
        """
        Return a snapshot of the registered endpoints.

        Raises:
            EndpointSourceFailure: the list could not be read
        """
        ...


@runtime_checkable
class SampleWriter(Protocol):
    """Write side of the sample store (used by the scheduler)."""

    def record_sample(
        self, alias: str, status_code: int, observed_at: datetime | None = None,
    ) -> None:
        """
        Persist one check outcome. ``observed_at`` defaults to now.

        Raises:
            StoreWriteFailure: the sample was not persisted
        """
        ...


@runtime_checkable
class SampleReader(Protocol):
    """Read side of the sample store (used by the aggregator + incidents)."""

    def bucketed_uptime(
        self,
        alias: str,
        bucket_seconds: int,
        limit: int,
        now: datetime | None = None,
    ) -> Sequence[BucketPoint]:
        """
        Uptime percentage per bucket that has at least one sample.

        Rows are ascending by bucket time and capped at ``limit``.

        Raises:
            StoreReadFailure: the query failed
        """
        ...

    def failures(self, alias: str) -> Sequence[Incident]:
        """
        Every sample for ``alias`` with a status other than 200, oldest first.

        Raises:
            StoreReadFailure: the query failed
        """
        ...
