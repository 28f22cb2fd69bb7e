# File: bundlepatch/core/patch_engine/drift.py
from __future__ import annotations

"""
Drift recovery.

Drift is the case where the artifact on disk was swapped for an incompatible build
(typically by the host application's self-update): nothing is pending, some
patches are broken, yet a lineage-marker patch still reads as applied. When that
combination shows up we look for a backup that still carries a known anchor and
continue from its content instead.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

from ..backups.store import Backup, BackupStore
from .classifier import Classification, classify_best
from .definitions import PatchSet


def drift_suspected(c: Classification) -> bool:
    return not c.pending and bool(c.broken) and bool(c.applied_markers())


def has_anchor(anchors: Sequence[str]) -> Callable[[str], bool]:
    """Predicate: content contains at least one of `anchors`."""
    items = [a for a in anchors if a]

    def _pred(content: str) -> bool:
        return any(a in content for a in items)

    return _pred


@dataclass
class RecoveryOutcome:
    recovered: bool
    content: str
    classification: Classification
    backup: Optional[Backup] = None


class DriftRecovery:
    """
    Best-effort recovery from a compatible backup. Each artifact gets at most one
    attempt per DriftRecovery instance (one instance per run).
    """

    def __init__(self, store: BackupStore):
        self.store = store
        self._attempted: Set[Path] = set()

    def attempted(self, artifact: Path) -> bool:
        return artifact in self._attempted

    def recover(
        self,
        artifact: Path,
        content: str,
        classification: Classification,
        patch_sets: Sequence[PatchSet],
        anchors: Sequence[str],
    ) -> RecoveryOutcome:
        if artifact in self._attempted:
            return RecoveryOutcome(recovered=False, content=content, classification=classification)
        self._attempted.add(artifact)

        predicate = has_anchor(anchors)
        candidates: List[Backup] = self.store.list_compatible(artifact, predicate)
        for backup in candidates:
            restored = backup.read_text()
            if restored == content:
                # identical to what is already on disk; cannot change anything
                continue
            return RecoveryOutcome(
                recovered=True,
                content=restored,
                classification=classify_best(restored, patch_sets),
                backup=backup,
            )
        return RecoveryOutcome(recovered=False, content=content, classification=classification)


__all__ = ["DriftRecovery", "RecoveryOutcome", "drift_suspected", "has_anchor"]
