from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional

import pytest

from datastore.timeseries import TimeSeriesTable, build_default_table
from models.records import Record, Revision
from services.errors import StoreWriteFailed
from services.extractor import RecordExtractor
from services.monitor import build_default_monitor
from services.replicator import IncrementalReplicator, build_default_replicator
from settings import get_settings
from storage.checkpoint import FileCheckpointStore, build_default_checkpoint_store
from storage.commit_log import build_default_commit_log

BASE_TIME = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)


def reading(
    hour: int,
    temperature: Optional[float] = 21.0,
    humidity: Optional[float] = 40.0,
    location: str = "living-room",
) -> Dict[str, object]:
    """Snapshot document for a reading taken ``hour`` hours after BASE_TIME."""

    timestamp = BASE_TIME + timedelta(hours=hour)
    return {
        "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
        "tags": {"location": location},
        "fields": {"temperature": temperature, "humidity": humidity},
    }


class FakeCommitLog:
    """In-memory commit history; ``commit`` prepends like a new git commit."""

    def __init__(self) -> None:
        self.order: List[str] = []
        self.snapshots: Dict[str, bytes] = {}
        self.reads: List[str] = []
        self.sync_calls = 0
        self.sync_error: Optional[Exception] = None

    def commit(self, revision_id: str, document: object) -> None:
        if isinstance(document, bytes):
            raw = document
        elif document is None:
            raw = None
        else:
            raw = json.dumps(document).encode("utf-8")
        self.order.insert(0, revision_id)
        if raw is not None:
            self.snapshots[revision_id] = raw

    def sync(self) -> None:
        self.sync_calls += 1
        if self.sync_error is not None:
            raise self.sync_error

    def list_revisions_newest_first(self) -> List[Revision]:
        return [
            Revision(
                id=revision_id,
                predecessor=self.order[index + 1] if index + 1 < len(self.order) else None,
            )
            for index, revision_id in enumerate(self.order)
        ]

    def read_snapshot(self, revision_id: str) -> bytes:
        self.reads.append(revision_id)
        return self.snapshots[revision_id]


class RecordingTable(TimeSeriesTable):
    """Time-series table that remembers every upsert in call order."""

    def __init__(self, *args, fail_after: Optional[int] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.upserts: List[datetime] = []
        self.fail_after = fail_after

    def upsert(self, record: Record) -> None:
        if self.fail_after is not None and len(self.upserts) >= self.fail_after:
            raise StoreWriteFailed("store offline")
        super().upsert(record)
        self.upserts.append(record.timestamp)


@pytest.fixture()
def commit_log() -> FakeCommitLog:
    return FakeCommitLog()


@pytest.fixture()
def table(tmp_path) -> RecordingTable:
    return RecordingTable(name="readings", persistence_path=tmp_path / "series.json")


@pytest.fixture()
def checkpoints(tmp_path) -> FileCheckpointStore:
    return FileCheckpointStore(tmp_path / "checkpoint")


@pytest.fixture()
def make_replicator(
    commit_log: FakeCommitLog,
    table: RecordingTable,
    checkpoints: FileCheckpointStore,
) -> Callable[..., IncrementalReplicator]:
    def factory(**overrides) -> IncrementalReplicator:
        log = overrides.get("log", commit_log)
        return IncrementalReplicator(
            log=log,
            extractor=RecordExtractor(log, ("temperature", "humidity")),
            store=overrides.get("store", table),
            checkpoints=overrides.get("checkpoints", checkpoints),
        )

    return factory


@pytest.fixture()
def replicator(make_replicator) -> IncrementalReplicator:
    return make_replicator()


@pytest.fixture(autouse=True)
def _isolate_factory_caches() -> Iterator[None]:
    yield
    for cache in (
        build_default_monitor,
        build_default_replicator,
        build_default_commit_log,
        build_default_checkpoint_store,
        build_default_table,
        get_settings,
    ):
        cache.cache_clear()

