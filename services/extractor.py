"""Turn committed snapshot bytes into validated records."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Iterable, Protocol, Sequence

from pydantic import ValidationError

from app.schemas import RecordPayload
from models.records import Record
from services.errors import InvalidRecord


class SnapshotReader(Protocol):
    def read_snapshot(self, revision_id: str) -> bytes: ...


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    return normalize_timestamp(parsed)


def normalize_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_record(raw: bytes | str, required_fields: Iterable[str] = ()) -> Record:
    """Parse one snapshot document and check that required fields are present.

    Raises :class:`InvalidRecord` for malformed JSON, a bad timestamp,
    non-numeric field values, or a missing/null required field.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidRecord("snapshot is not valid UTF-8") from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidRecord(f"snapshot is not valid JSON: {exc.msg}") from exc
    if not isinstance(document, dict):
        raise InvalidRecord("snapshot is not a JSON object")

    timestamp_raw = document.get("timestamp")
    if not isinstance(timestamp_raw, str):
        raise InvalidRecord("missing timestamp")
    try:
        timestamp = parse_timestamp(timestamp_raw)
    except ValueError as exc:
        raise InvalidRecord("invalid timestamp") from exc

    try:
        payload = RecordPayload.model_validate({**document, "timestamp": timestamp})
    except ValidationError as exc:
        raise InvalidRecord(f"invalid snapshot: {exc.error_count()} validation error(s)") from exc

    record = payload.to_record()
    missing = record.missing_fields(required_fields)
    if missing:
        raise InvalidRecord(f"missing required fields: {', '.join(missing)}")
    return record


class RecordExtractor:
    """Reads the snapshot at a revision and parses it into a record."""

    def __init__(self, reader: SnapshotReader, required_fields: Sequence[str]) -> None:
        self.reader = reader
        self.required_fields = tuple(required_fields)

    def extract(self, revision_id: str) -> Record:
        try:
            raw = self.reader.read_snapshot(revision_id)
        except KeyError as exc:
            raise InvalidRecord("snapshot missing", revision_id=revision_id) from exc
        try:
            return parse_record(raw, self.required_fields)
        except InvalidRecord as exc:
            raise InvalidRecord(exc.reason, revision_id=revision_id) from exc
