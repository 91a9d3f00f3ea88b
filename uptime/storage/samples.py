"""Sample store: SQLite-backed raw check results + bucketed uptime queries."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

from ..health.aggregator import align_to_bucket
from ..health.errors import StoreReadFailure, StoreWriteFailure
from ..health.models import SUCCESS_STATUS, BucketPoint, Incident, RawSample, utcnow
from .db import connect, from_db_time, init_db, resolve_path, to_db_time

logger = logging.getLogger(__name__)

# Truncate each sample to its bucket start (epoch seconds), then compute the
# integer percentage of 200s per bucket. Only buckets inside the look-back
# window are kept, newest `limit` of them, returned oldest first.
_BUCKETED_UPTIME_SQL = """
    SELECT bucket, uptime_pct FROM (
        SELECT b.bucket AS bucket,
               COUNT(CASE WHEN b.status_code = :success THEN 1 END) * 100 / COUNT(*)
                   AS uptime_pct
        FROM (
            SELECT (CAST(strftime('%s', observed_at) AS INTEGER) / :bucket_seconds)
                       * :bucket_seconds AS bucket,
                   status_code
            FROM samples
            WHERE alias = :alias
        ) b
        WHERE b.bucket BETWEEN :window_start AND :window_end
        GROUP BY b.bucket
        ORDER BY b.bucket DESC
        LIMIT :max_buckets
    )
    ORDER BY bucket ASC
"""


class SampleStore:
    """SQLite-backed storage for raw samples.

    A new connection is opened per operation so one instance can be shared by
    the scheduler (writer) and request handlers (readers) across threads.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = resolve_path(db_path)
        init_db(self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ── Write ─────────────────────────────────────────────────────────────

    def record_sample(
        self, alias: str, status_code: int, observed_at: datetime | None = None,
    ) -> None:
        """Insert one sample. Raises StoreWriteFailure."""
        ts = to_db_time(observed_at or utcnow())
        try:
            with connect(self._db_path) as conn:
                conn.execute(
                    "INSERT INTO samples (alias, status_code, observed_at) VALUES (?, ?, ?)",
                    (alias, status_code, ts),
                )
        except sqlite3.Error as e:
            raise StoreWriteFailure(alias, e) from e

    # ── Read ──────────────────────────────────────────────────────────────

    def bucketed_uptime(
        self,
        alias: str,
        bucket_seconds: int,
        limit: int,
        now: datetime | None = None,
    ) -> list[BucketPoint]:
        """Uptime % per non-empty bucket in the last ``limit`` buckets, ascending."""
        window_end = align_to_bucket(now or utcnow(), bucket_seconds)
        window_start = window_end - timedelta(seconds=bucket_seconds * (limit - 1))
        params = {
            "alias": alias,
            "success": SUCCESS_STATUS,
            "bucket_seconds": bucket_seconds,
            "window_start": int(window_start.timestamp()),
            "window_end": int(window_end.timestamp()),
            "max_buckets": limit,
        }
        try:
            with connect(self._db_path) as conn:
                rows = conn.execute(_BUCKETED_UPTIME_SQL, params).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure("bucketed uptime query", e, alias=alias) from e

        return [
            BucketPoint(
                time=datetime.fromtimestamp(r["bucket"], tz=timezone.utc),
                uptime_pct=r["uptime_pct"],
            )
            for r in rows
        ]

    def failures(self, alias: str) -> list[Incident]:
        """All non-200 samples for ``alias``, oldest first."""
        try:
            with connect(self._db_path) as conn:
                rows = conn.execute(
                    "SELECT observed_at, status_code FROM samples "
                    "WHERE alias = ? AND status_code != ? "
                    "ORDER BY observed_at, id",
                    (alias, SUCCESS_STATUS),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure("incident query", e, alias=alias) from e
        return [Incident(time=from_db_time(r["observed_at"]), status_code=r["status_code"]) for r in rows]

    def history(self, alias: str, limit: int = 100) -> list[RawSample]:
        """Most recent raw samples for ``alias``, newest first."""
        try:
            with connect(self._db_path) as conn:
                rows = conn.execute(
                    "SELECT alias, observed_at, status_code FROM samples "
                    "WHERE alias = ? ORDER BY observed_at DESC, id DESC LIMIT ?",
                    (alias, limit),
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreReadFailure("history query", e, alias=alias) from e
        return [
            RawSample(alias=r["alias"], observed_at=from_db_time(r["observed_at"]), status_code=r["status_code"])
            for r in rows
        ]
