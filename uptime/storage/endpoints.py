"""Endpoint registry: the set of monitored URLs, keyed by alias.

Endpoints live in SQLite next to their samples. An optional endpoints.yaml
seeds the registry at startup:

    endpoints:
      - url: https://example.com
        alias: example
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

import yaml

from ..health.errors import EndpointSourceFailure, StoreReadFailure, StoreWriteFailure
from ..health.models import MonitoredEndpoint, utcnow
from .db import connect, init_db, resolve_path, to_db_time

logger = logging.getLogger(__name__)


class EndpointRegistry:
    """SQLite-backed endpoint registry. Implements the EndpointSource protocol."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = resolve_path(db_path)
        init_db(self._db_path)

    def list_endpoints(self) -> list[MonitoredEndpoint]:
        """Snapshot of all registered endpoints, ordered by alias."""
        try:
            with connect(self._db_path) as conn:
                rows = conn.execute("SELECT url, alias FROM endpoints ORDER BY alias").fetchall()
        except sqlite3.Error as e:
            raise EndpointSourceFailure(e) from e
        return [MonitoredEndpoint(url=r["url"], alias=r["alias"]) for r in rows]

    def get(self, alias: str) -> MonitoredEndpoint | None:
        try:
            with connect(self._db_path) as conn:
                row = conn.execute(
                    "SELECT url, alias FROM endpoints WHERE alias = ?", (alias,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreReadFailure("endpoint lookup", e, alias=alias) from e
        return MonitoredEndpoint(url=row["url"], alias=row["alias"]) if row else None

    def add(self, url: str, alias: str) -> MonitoredEndpoint:
        """Register a new endpoint.

        Raises ``ValueError`` if the alias is empty or already registered and
        StoreWriteFailure if the insert fails for any other reason.
        """
        alias = alias.strip()
        if not alias:
            raise ValueError("Endpoint 'alias' is required")
        if not url:
            raise ValueError("Endpoint 'url' is required")
        try:
            with connect(self._db_path) as conn:
                conn.execute(
                    "INSERT INTO endpoints (alias, url, created_at) VALUES (?, ?, ?)",
                    (alias, url, to_db_time(utcnow())),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Endpoint '{alias}' already exists") from e
        except sqlite3.Error as e:
            raise StoreWriteFailure(alias, e, operation="register endpoint") from e
        logger.info("Registered endpoint '%s' -> %s", alias, url)
        return MonitoredEndpoint(url=url, alias=alias)

    def remove(self, alias: str) -> bool:
        """Delete an endpoint and all of its samples in one transaction.

        Raises StoreWriteFailure; nothing is deleted in that case.
        """
        try:
            with connect(self._db_path) as conn:
                conn.execute("DELETE FROM samples WHERE alias = ?", (alias,))
                cursor = conn.execute("DELETE FROM endpoints WHERE alias = ?", (alias,))
                removed = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreWriteFailure(alias, e, operation="remove endpoint") from e
        if removed:
            logger.info("Removed endpoint '%s'", alias)
        return removed

    def load_seed_file(self, path: Path | str) -> int:
        """Register endpoints from a YAML file. Returns how many were added."""
        path = Path(path)
        if not path.exists():
            logger.debug("Endpoint seed file not found: %s", path)
            return 0

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            logger.error("Failed to parse %s: %s", path, e)
            return 0
        if not isinstance(raw, dict):
            logger.error("Expected a mapping with an 'endpoints' list in %s", path)
            return 0

        known = {ep.alias for ep in self.list_endpoints()}
        added = 0
        for entry in raw.get("endpoints") or []:
            try:
                url, alias = _parse_entry(entry)
            except ValueError as e:
                logger.warning("Skipping malformed endpoint entry: %s", e)
                continue
            if alias in known:
                continue
            self.add(url, alias)
            known.add(alias)
            added += 1

        logger.info("Seeded %d endpoints from %s", added, path)
        return added


def _parse_entry(entry: Any) -> tuple[str, str]:
    if not isinstance(entry, dict):
        raise ValueError(f"expected a mapping, got {type(entry).__name__}")
    url = str(entry.get("url") or "").strip()
    alias = str(entry.get("alias") or "").strip()
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"invalid url: {url!r}")
    if not alias:
        raise ValueError(f"missing alias for {url}")
    return url, alias
