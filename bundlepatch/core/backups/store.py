# File: bundlepatch/core/backups/store.py
"""
Backup Store - timestamped snapshots of artifacts taken before a patch run.

Backups live next to the artifact they belong to:
```
{artifact_dir}/
    main.js
    main.js.backup.20261019-101500
    main.js.backup.20261020-083012
```

All artifacts snapshotted in one run share the same timestamp. Snapshots are
never modified once written; pruning them is left to external housekeeping.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from ..errors import BackupFailure
from ..utils.io.textops import read_text_preserve

BACKUP_INFIX = ".backup."


@dataclass(frozen=True)
class Backup:
    artifact: Path
    path: Path
    stamp: str
    size: int

    def read_text(self) -> str:
        return read_text_preserve(self.path)


class BackupStore:
    """
    Creates and restores `<artifact>.backup.<timestamp>` snapshots.

    The timestamp format must sort lexicographically in time order; recency is
    decided by comparing stamps, not file modification times.
    """

    TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

    def __init__(
        self,
        timestamp_format: str = TIMESTAMP_FORMAT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.timestamp_format = timestamp_format
        self.clock = clock or datetime.now

    # ---------- naming ----------

    @staticmethod
    def backup_path(artifact: Path, stamp: str) -> Path:
        return artifact.with_name(f"{artifact.name}{BACKUP_INFIX}{stamp}")

    def new_run_stamp(self, artifacts: Iterable[Path]) -> str:
        """
        A stamp not yet used by any of `artifacts`. On collision (two runs in the
        same second) the clock is advanced one second at a time.
        """
        paths = list(artifacts)
        now = self.clock()
        while True:
            stamp = now.strftime(self.timestamp_format)
            if not any(self.backup_path(p, stamp).exists() for p in paths):
                return stamp
            now += timedelta(seconds=1)

    # ---------- snapshot ----------

    def snapshot(self, artifact: Path, stamp: str) -> Backup:
        if not artifact.is_file():
            raise BackupFailure(f"cannot back up missing file: {artifact}")
        target = self.backup_path(artifact, stamp)
        if target.exists():
            raise BackupFailure(f"backup already exists: {target}")
        try:
            shutil.copy2(artifact, target)
        except OSError as e:
            raise BackupFailure(f"cannot create backup {target}: {e}") from e
        return Backup(artifact=artifact, path=target, stamp=stamp, size=target.stat().st_size)

    def snapshot_all(self, artifacts: Iterable[Path], stamp: Optional[str] = None) -> Dict[Path, Backup]:
        """
        Snapshot every artifact under one shared stamp. Raises BackupFailure on the
        first failure; snapshots already written stay on disk untouched.
        """
        paths = list(artifacts)
        stamp = stamp or self.new_run_stamp(paths)
        return {p: self.snapshot(p, stamp) for p in paths}

    # ---------- listing ----------

    def list_backups(self, artifact: Path) -> List[Backup]:
        """All backups of `artifact`, newest first."""
        folder = artifact.parent
        if not folder.is_dir():
            return []
        prefix = f"{artifact.name}{BACKUP_INFIX}"
        out: List[Backup] = []
        for p in folder.iterdir():
            if not p.name.startswith(prefix) or not p.is_file():
                continue
            out.append(Backup(artifact=artifact, path=p, stamp=p.name[len(prefix):], size=p.stat().st_size))
        out.sort(key=lambda b: b.stamp, reverse=True)
        return out

    def latest(self, artifact: Path) -> Optional[Backup]:
        backups = self.list_backups(artifact)
        return backups[0] if backups else None

    def list_compatible(self, artifact: Path, predicate: Callable[[str], bool]) -> List[Backup]:
        """
        Backups whose content satisfies `predicate`, largest first and newest
        first among equal sizes.
        """
        candidates = sorted(self.list_backups(artifact), key=lambda b: (b.size, b.stamp), reverse=True)
        out: List[Backup] = []
        for b in candidates:
            try:
                text = b.read_text()
            except (OSError, UnicodeDecodeError):
                continue
            if predicate(text):
                out.append(b)
        return out

    # ---------- restore ----------

    def restore_snapshot(self, backup: Backup, target: Optional[Path] = None) -> None:
        shutil.copy2(backup.path, target or backup.artifact)

    def restore(self, artifact: Path) -> Optional[str]:
        """
        Copy the newest backup over `artifact` and return the restored content,
        or None when the artifact has no backup.
        """
        backup = self.latest(artifact)
        if backup is None:
            return None
        self.restore_snapshot(backup, artifact)
        return backup.read_text()


__all__ = ["Backup", "BackupStore", "BACKUP_INFIX"]
