"""Incident extractor: every non-200 sample for an endpoint, oldest first."""

from __future__ import annotations

from .models import SUCCESS_STATUS, Incident
from .protocols import SampleReader


class IncidentExtractor:
    """Read-only view over a SampleReader's failed samples."""

    def __init__(self, reader: SampleReader) -> None:
        self.reader = reader

    def incidents(self, alias: str) -> list[Incident]:
        """Full incident history for ``alias``. Raises StoreReadFailure."""
        rows = self.reader.failures(alias)
        return sorted(
            (r for r in rows if r.status_code != SUCCESS_STATUS),
            key=lambda r: r.time,
        )
