from __future__ import annotations

import logging
import subprocess
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence

from models.records import Revision
from services.errors import SourceUnavailable
from settings import get_settings, require

logger = logging.getLogger(__name__)


class GitCommitLog:
    """Read-only view of the sensor repository's commit history.

    Each commit carries one snapshot of the file at ``snapshot_path``. The
    order returned by :meth:`list_revisions_newest_first` is whatever
    ``git rev-list`` reports for ``HEAD`` and is stable for the duration of
    one run as long as nothing else moves ``HEAD`` meanwhile.
    """

    def __init__(
        self,
        repo_path: Path,
        snapshot_path: str,
        remote: Optional[str] = None,
        branch: Optional[str] = None,
        timeout: float = 60.0,
    ) -> None:
        self.repo_path = repo_path
        self.snapshot_path = snapshot_path
        self.remote = remote
        self.branch = branch
        self.timeout = timeout

    def sync(self) -> None:
        """Fast-forward the local clone from its upstream, if one is configured."""
        if not self.remote:
            logger.debug("No remote configured; skipping sync of %s", self.repo_path)
            return
        args = ["pull", "--ff-only", self.remote]
        if self.branch:
            args.append(self.branch)
        self._git(args)

    def list_revisions_newest_first(self) -> List[Revision]:
        if not self._has_head():
            return []
        output = self._git(["rev-list", "--parents", "HEAD"])
        revisions: List[Revision] = []
        for line in output.splitlines():
            parts = line.split()
            if not parts:
                continue
            predecessor = parts[1] if len(parts) > 1 else None
            revisions.append(Revision(id=parts[0], predecessor=predecessor))
        return revisions

    def read_snapshot(self, revision_id: str) -> bytes:
        """Return the snapshot file as committed at ``revision_id``.

        Raises ``KeyError`` when the file does not exist at that revision.
        """
        object_name = f"{revision_id}:{self.snapshot_path}"
        if self._run(["cat-file", "-e", object_name]).returncode != 0:
            raise KeyError(
                f"Snapshot {self.snapshot_path!r} not found at revision {revision_id!r}."
            )
        completed = self._run(["show", object_name], text=False)
        if completed.returncode != 0:
            raise SourceUnavailable(
                f"git show {object_name} failed: {completed.stderr.decode(errors='replace').strip()}"
            )
        return completed.stdout

    def _has_head(self) -> bool:
        return self._run(["rev-parse", "--verify", "--quiet", "HEAD"]).returncode == 0

    def _git(self, args: Sequence[str]) -> str:
        completed = self._run(args)
        if completed.returncode != 0:
            raise SourceUnavailable(
                f"git {' '.join(args)} failed in {self.repo_path}: {completed.stderr.strip()}"
            )
        return completed.stdout

    def _run(self, args: Sequence[str], text: bool = True) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=text,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise SourceUnavailable(
                f"git {' '.join(args)} timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise SourceUnavailable(f"Unable to run git in {self.repo_path}: {exc}") from exc


@lru_cache
def build_default_commit_log() -> GitCommitLog:
    settings = get_settings()
    repo_path = require(settings.repo_path, "SENSORLOG_REPO_PATH")
    snapshot_path = require(settings.snapshot_path, "SENSORLOG_SNAPSHOT_PATH")
    return GitCommitLog(
        repo_path=Path(repo_path),
        snapshot_path=snapshot_path,
        remote=settings.git_remote,
        branch=settings.git_branch,
        timeout=settings.git_timeout,
    )
