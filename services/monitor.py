"""Stateless staleness check for the sensor feed.

Every invocation decides from the age of the latest record alone:

* ``age <= H``      healthy, nothing to do;
* ``H < age <= S``  stale, send one notification;
* ``age > S``       stale, assumed reported by an earlier invocation.

With checks every ``P <= S - H`` an incident is seen at least once inside
``(H, S]`` and alerted at most ``ceil((S - H) / P)`` times. If every check in
that window is missed (the monitor itself was down), the incident stays
silent until a new record arrives.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional, Protocol

from app.schemas import MonitorStatus
from models.records import MonitorObservation, Record
from services.errors import ConfigurationError, NotifyFailed
from services.latest import HttpLatestRecordSource
from services.notifier import HttpNotifier
from settings import get_settings, require

logger = logging.getLogger(__name__)

ALERT_TITLE = "Sensor offline"
ALERT_BODY = "No new sensor readings have been recorded recently. Check the sensor and its uploader."


class LatestRecordSource(Protocol):
    def fetch_latest(self) -> Record: ...


class Notifier(Protocol):
    def send(self, title: str, body: str) -> bool: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def classify_age(
    age: timedelta,
    health_threshold: timedelta,
    suppression_threshold: timedelta,
) -> MonitorStatus:
    if age <= health_threshold:
        return MonitorStatus.healthy
    if age <= suppression_threshold:
        return MonitorStatus.stale_alerting
    return MonitorStatus.stale_suppressed


class StalenessMonitor:
    """Checks the latest record's age and notifies inside the alert window."""

    def __init__(
        self,
        source: LatestRecordSource,
        notifier: Notifier,
        health_threshold: timedelta = timedelta(hours=1),
        suppression_threshold: timedelta = timedelta(hours=3),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if suppression_threshold <= health_threshold:
            raise ConfigurationError(
                "Suppression threshold must be greater than the health threshold."
            )
        self.source = source
        self.notifier = notifier
        self.health_threshold = health_threshold
        self.suppression_threshold = suppression_threshold
        self._clock = clock

    def check(self, now: Optional[datetime] = None) -> MonitorStatus:
        # SourceUnavailable from the fetch propagates untouched.
        record = self.source.fetch_latest()
        observation = MonitorObservation(
            record_timestamp=record.timestamp,
            observed_at=now if now is not None else self._clock(),
        )
        status = classify_age(
            observation.age, self.health_threshold, self.suppression_threshold
        )
        context = {
            "status": status.value,
            "age_seconds": int(observation.age.total_seconds()),
            "record_timestamp": observation.record_timestamp.isoformat(),
        }

        if status is MonitorStatus.stale_alerting:
            logger.warning("Sensor feed is stale; sending notification", extra=context)
            if not self.notifier.send(ALERT_TITLE, ALERT_BODY):
                raise NotifyFailed("Notifier did not accept the staleness alert.")
        elif status is MonitorStatus.stale_suppressed:
            logger.info("Sensor feed is stale; alert window has passed", extra=context)
        else:
            logger.info("Sensor feed is healthy", extra=context)
        return status


@lru_cache
def build_default_monitor() -> StalenessMonitor:
    settings = get_settings()
    source = HttpLatestRecordSource(
        url=require(settings.latest_url, "SENSORLOG_LATEST_URL"),
        timeout=settings.http_timeout,
    )
    notifier = HttpNotifier(
        url=require(settings.notify_url, "SENSORLOG_NOTIFY_URL"),
        token=settings.notify_token,
        timeout=settings.http_timeout,
    )
    return StalenessMonitor(
        source=source,
        notifier=notifier,
        health_threshold=settings.health_threshold,
        suppression_threshold=settings.suppression_threshold,
    )
