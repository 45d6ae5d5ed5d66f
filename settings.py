from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional, Tuple

from services.errors import ConfigurationError


_HEALTH_THRESHOLD_ENV = "SENSORLOG_HEALTH_THRESHOLD_MINUTES"
_SUPPRESSION_THRESHOLD_ENV = "SENSORLOG_SUPPRESSION_THRESHOLD_MINUTES"
_REPO_PATH_ENV = "SENSORLOG_REPO_PATH"
_SNAPSHOT_PATH_ENV = "SENSORLOG_SNAPSHOT_PATH"
_GIT_REMOTE_ENV = "SENSORLOG_GIT_REMOTE"
_GIT_BRANCH_ENV = "SENSORLOG_GIT_BRANCH"
_GIT_TIMEOUT_ENV = "SENSORLOG_GIT_TIMEOUT_SECONDS"
_CHECKPOINT_PATH_ENV = "SENSORLOG_CHECKPOINT_PATH"
_STORE_NAME_ENV = "SENSORLOG_STORE_NAME"
_STORE_PATH_ENV = "SENSORLOG_STORE_PATH"
_REQUIRED_FIELDS_ENV = "SENSORLOG_REQUIRED_FIELDS"
_LATEST_URL_ENV = "SENSORLOG_LATEST_URL"
_NOTIFY_URL_ENV = "SENSORLOG_NOTIFY_URL"
_NOTIFY_TOKEN_ENV = "SENSORLOG_NOTIFY_TOKEN"
_HTTP_TIMEOUT_ENV = "SENSORLOG_HTTP_TIMEOUT_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_HEALTH_THRESHOLD = timedelta(hours=1)
DEFAULT_SUPPRESSION_THRESHOLD = timedelta(hours=3)
DEFAULT_REQUIRED_FIELDS = ("temperature", "humidity")


@dataclass(frozen=True)
class Settings:
    health_threshold: timedelta
    suppression_threshold: timedelta
    repo_path: Optional[str]
    snapshot_path: Optional[str]
    git_remote: Optional[str]
    git_branch: Optional[str]
    git_timeout: float
    checkpoint_path: Optional[str]
    store_name: str
    store_path: Optional[str]
    required_fields: Tuple[str, ...]
    latest_url: Optional[str]
    notify_url: Optional[str]
    notify_token: Optional[str]
    http_timeout: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_minutes(name: str, default: timedelta) -> timedelta:
    minutes = _read_positive_float(name, default.total_seconds() / 60)
    return timedelta(minutes=minutes)


def _read_required_fields(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_REQUIRED_FIELDS_ENV)
    if value is None:
        return default
    names = tuple(part.strip() for part in value.split(",") if part.strip())
    return names or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        health_threshold=_read_minutes(_HEALTH_THRESHOLD_ENV, DEFAULT_HEALTH_THRESHOLD),
        suppression_threshold=_read_minutes(
            _SUPPRESSION_THRESHOLD_ENV, DEFAULT_SUPPRESSION_THRESHOLD
        ),
        repo_path=_read_optional_env(_REPO_PATH_ENV),
        snapshot_path=_read_optional_env(_SNAPSHOT_PATH_ENV),
        git_remote=_read_optional_env(_GIT_REMOTE_ENV),
        git_branch=_read_optional_env(_GIT_BRANCH_ENV),
        git_timeout=_read_positive_float(_GIT_TIMEOUT_ENV, 60.0),
        checkpoint_path=_read_optional_env(_CHECKPOINT_PATH_ENV),
        store_name=_read_str_env(_STORE_NAME_ENV, "readings"),
        store_path=_read_optional_env(_STORE_PATH_ENV),
        required_fields=_read_required_fields(DEFAULT_REQUIRED_FIELDS),
        latest_url=_read_optional_env(_LATEST_URL_ENV),
        notify_url=_read_optional_env(_NOTIFY_URL_ENV),
        notify_token=_read_optional_env(_NOTIFY_TOKEN_ENV),
        http_timeout=_read_positive_float(_HTTP_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )


def require(value: Optional[str], env_name: str) -> str:
    """Return a configured location or fail with the variable that is missing."""
    if value:
        return value
    raise ConfigurationError(f"{env_name} is not set.")
