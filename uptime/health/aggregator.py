"""Uptime aggregator: fixed-length hourly / daily series per endpoint.

The sample store only returns buckets that contain samples. Every aligned
bucket in the look-back window that the store did not return is filled in
with ``uptime_pct=None``, so callers always get exactly ``bucket_count``
points, newest first.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

from .models import DAILY, HOURLY, BucketPoint, UptimeWindow, utcnow
from .protocols import SampleReader

logger = logging.getLogger(__name__)


def align_to_bucket(ts: datetime, bucket_seconds: int) -> datetime:
    """Truncate ``ts`` down to its bucket boundary (UTC epoch multiples).

    For 3600 this zeroes minutes and below; for 86400 it is midnight UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    epoch = math.floor(ts.timestamp())
    return datetime.fromtimestamp(epoch - epoch % bucket_seconds, tz=timezone.utc)


def window_boundaries(now: datetime, bucket_seconds: int, bucket_count: int) -> list[datetime]:
    """The ``bucket_count`` most recent bucket starts, newest first."""
    return [
        align_to_bucket(now - timedelta(seconds=bucket_seconds * i), bucket_seconds)
        for i in range(bucket_count)
    ]


def fill_gaps(
    rows: Iterable[BucketPoint],
    bucket_seconds: int,
    bucket_count: int,
    now: datetime,
) -> list[BucketPoint]:
    """Add a no-data point for every boundary missing from ``rows``.

    Rows are returned untouched (only re-sorted) when there are already
    ``bucket_count`` or more of them.
    """
    points = list(rows)
    if len(points) < bucket_count:
        seen = {p.time for p in points}
        for boundary in window_boundaries(now, bucket_seconds, bucket_count):
            if boundary not in seen:
                points.append(BucketPoint(time=boundary, uptime_pct=None))
                seen.add(boundary)
    points.sort(key=lambda p: p.time, reverse=True)
    return points


class UptimeAggregator:
    """Builds gap-free uptime series from a SampleReader."""

    def __init__(
        self,
        reader: SampleReader,
        clock: Callable[[], datetime] = utcnow,
        hourly_buckets: int = HOURLY.bucket_count,
        daily_buckets: int = DAILY.bucket_count,
    ) -> None:
        self.reader = reader
        self.clock = clock
        self.hourly_window = UptimeWindow(HOURLY.name, HOURLY.bucket_seconds, hourly_buckets)
        self.daily_window = UptimeWindow(DAILY.name, DAILY.bucket_seconds, daily_buckets)

    def aggregate(self, alias: str, bucket_seconds: int, bucket_count: int) -> list[BucketPoint]:
        """Exactly ``bucket_count`` points for ``alias``, newest first.

        Raises StoreReadFailure if the store query fails; nothing partial
        is returned in that case.
        """
        if bucket_seconds <= 0:
            raise ValueError(f"bucket_seconds must be positive, got {bucket_seconds}")
        if bucket_count <= 0:
            raise ValueError(f"bucket_count must be positive, got {bucket_count}")

        now = self.clock()
        rows = self.reader.bucketed_uptime(alias, bucket_seconds, bucket_count, now=now)
        series = fill_gaps(rows, bucket_seconds, bucket_count, now)
        logger.debug(
            "Aggregated %s: %d stored buckets, %d returned (%ds x %d)",
            alias, len(rows), len(series), bucket_seconds, bucket_count,
        )
        return series

    def series(self, alias: str, window: UptimeWindow) -> list[BucketPoint]:
        return self.aggregate(alias, window.bucket_seconds, window.bucket_count)

    def hourly(self, alias: str) -> list[BucketPoint]:
        return self.series(alias, self.hourly_window)

    def daily(self, alias: str) -> list[BucketPoint]:
        return self.series(alias, self.daily_window)

    def window(self, name: str) -> UptimeWindow:
        """Look up a window by name (``hourly`` / ``daily``)."""
        for w in (self.hourly_window, self.daily_window):
            if w.name == name:
                return w
        raise ValueError(f"Unknown window: {name}. Must be one of ('hourly', 'daily')")
