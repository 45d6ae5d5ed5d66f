"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True, slots=True)
class Revision:
    """One commit of the sensor repository, newest first in listings."""

    id: str
    predecessor: Optional[str] = None


@dataclass(slots=True)
class Record:
    """A single sensor snapshot committed at one revision."""

    timestamp: datetime
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, Optional[float]] = field(default_factory=dict)

    def missing_fields(self, required: Iterable[str]) -> List[str]:
        """Required field names that are absent or null."""
        return [name for name in required if self.fields.get(name) is None]


@dataclass(frozen=True, slots=True)
class MonitorObservation:
    record_timestamp: datetime
    observed_at: datetime

    @property
    def age(self) -> timedelta:
        return self.observed_at - self.record_timestamp
