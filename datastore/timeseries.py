from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import ValidationError

from app.schemas import RecordPayload
from models.records import Record
from services.errors import StoreWriteFailed
from settings import get_settings, require


def _series_key(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


class TimeSeriesTable:
    """Time-series table keyed by record timestamp.

    ``upsert`` overwrites any point sharing the same timestamp, so replaying
    the same record any number of times, in any order, converges on the same
    stored state.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._points: Dict[str, RecordPayload] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def upsert(self, record: Record) -> None:
        key = _series_key(record.timestamp)
        with self._lock:
            previous = self._points.get(key)
            self._points[key] = RecordPayload.from_record(record)
            try:
                self._persist()
            except OSError as exc:
                if previous is None:
                    del self._points[key]
                else:
                    self._points[key] = previous
                raise StoreWriteFailed(
                    f"Unable to write point {key} to {self.name!r}: {exc}"
                ) from exc

    def get(self, timestamp: datetime) -> Optional[Record]:
        with self._lock:
            payload = self._points.get(_series_key(timestamp))
            if payload is None:
                return None
            return payload.to_record()

    def scan(self) -> list[Record]:
        """Return copies of all stored points, oldest first."""

        with self._lock:
            return [self._points[key].to_record() for key in sorted(self._points)]

    def query(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[Record]:
        """Return points with ``start <= timestamp <= end``, oldest first."""

        lower = _series_key(start) if start is not None else None
        upper = _series_key(end) if end is not None else None
        with self._lock:
            return [
                self._points[key].to_record()
                for key in sorted(self._points)
                if (lower is None or key >= lower) and (upper is None or key <= upper)
            ]

    def latest(self) -> Optional[Record]:
        with self._lock:
            if not self._points:
                return None
            return self._points[max(self._points)].to_record()

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            key: point.model_dump(mode="json") for key, point in self._points.items()
        }
        tmp_path = self.persistence_path.with_name(f"{self.persistence_path.name}.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        os.replace(tmp_path, self.persistence_path)

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        # Unreadable files are reported and left on disk, never replaced.
        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object keyed by timestamp")
            points = {
                key: RecordPayload.model_validate(payload) for key, payload in data.items()
            }
        except (OSError, ValueError, ValidationError) as exc:
            raise StoreWriteFailed(
                f"Refusing to open {self.name!r}: {self.persistence_path} is unreadable ({exc})"
            ) from exc

        self._points.update(points)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> TimeSeriesTable:
    settings = get_settings()
    table_name = settings.store_name if name is None else name
    table_path = path or require(settings.store_path, "SENSORLOG_STORE_PATH")
    return TimeSeriesTable(name=table_name, persistence_path=Path(table_path))
