"""Append-only sinks for usage records.

A sink receives exactly one :class:`UsageRecord` per model invocation and
never mutates or drops records it has already accepted.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from impact_analysis.domain.values import UsageRecord
from impact_analysis.infrastructure.serialization import (
    usage_record_from_dict,
    usage_record_to_dict,
)

logger = logging.getLogger(__name__)


class UsageSink(ABC):
    """Destination for usage records."""

    @abstractmethod
    def record(self, record: UsageRecord) -> None:
        ...


class InMemoryUsageSink(UsageSink):
    """Thread-safe in-memory sink.  ``records`` returns a snapshot copy."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[UsageRecord] = []

    def record(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> tuple[UsageRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def for_analysis(self, analysis_id: str) -> list[UsageRecord]:
        with self._lock:
            return [r for r in self._records if r.analysis_id == analysis_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class JsonlUsageSink(UsageSink):
    """Appends each record as one JSON line to *path*."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def record(self, record: UsageRecord) -> None:
        line = json.dumps(usage_record_to_dict(record), sort_keys=True)
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def read_all(self) -> list[UsageRecord]:
        """Load every record written so far (empty if the file is missing)."""
        if not self._path.exists():
            return []
        records: list[UsageRecord] = []
        with self._path.open(encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    records.append(usage_record_from_dict(json.loads(line)))
        return records
