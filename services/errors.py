"""Error kinds raised by the replication and monitoring paths."""

from __future__ import annotations


class SensorlogError(Exception):
    """Base class for every error surfaced to the scheduler."""


class ConfigurationError(SensorlogError):
    """A required setting is missing or inconsistent."""


class SourceUnavailable(SensorlogError):
    """The commit log or the latest-record endpoint could not be read."""


class InvalidRecord(SensorlogError):
    """A snapshot could not be turned into a complete record."""

    def __init__(self, reason: str, revision_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.revision_id = revision_id


class StoreWriteFailed(SensorlogError):
    """The time-series store rejected an upsert."""


class CheckpointPersistFailed(SensorlogError):
    """The checkpoint could not be saved after a replication pass."""


class NotifyFailed(SensorlogError):
    """The notifier did not accept an alert."""
