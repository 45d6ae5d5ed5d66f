from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Optional

from services.errors import CheckpointPersistFailed
from settings import get_settings, require


class FileCheckpointStore:
    """Single-slot store for the newest revision id already replicated."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = Lock()

    def load(self) -> Optional[str]:
        with self._lock:
            if not self.path.exists():
                return None
            value = self.path.read_text(encoding="utf-8").strip()
        return value or None

    def save(self, revision_id: str) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(f"{revision_id}\n", encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as exc:
                raise CheckpointPersistFailed(
                    f"Unable to persist checkpoint to {self.path}: {exc}"
                ) from exc


@lru_cache
def build_default_checkpoint_store(path: Optional[str] = None) -> FileCheckpointStore:
    settings = get_settings()
    checkpoint_path = path or require(settings.checkpoint_path, "SENSORLOG_CHECKPOINT_PATH")
    return FileCheckpointStore(Path(checkpoint_path))
