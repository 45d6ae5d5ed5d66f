"""Pydantic schemas for snapshots and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import Record


class MonitorStatus(str, Enum):
    """Outcome of a single staleness check."""

    healthy = "healthy"
    stale_alerting = "stale_alerting"
    stale_suppressed = "stale_suppressed"


class RecordPayload(BaseModel):
    """JSON shape of a committed snapshot and of records served by the API."""

    timestamp: datetime
    tags: Dict[str, str] = Field(default_factory=dict)
    fields: Dict[str, Optional[float]] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Record) -> "RecordPayload":
        return cls(
            timestamp=record.timestamp,
            tags=dict(record.tags),
            fields=dict(record.fields),
        )

    def to_record(self) -> Record:
        return Record(
            timestamp=self.timestamp,
            tags=dict(self.tags),
            fields=dict(self.fields),
        )


class RecordList(BaseModel):
    count: int = Field(..., ge=0)
    records: List[RecordPayload] = Field(default_factory=list)


class ReplicationResponse(BaseModel):
    """Summary of a replication run triggered over HTTP."""

    records_written: int = Field(..., ge=0)


class MonitorResponse(BaseModel):
    status: MonitorStatus
