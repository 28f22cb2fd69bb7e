# File: bundlepatch/core/patch_engine/classifier.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List

from .definitions import PatchDefinition, PatchSet


class PatchState(str, Enum):
    ALREADY_APPLIED = "already_applied"
    PENDING = "pending"
    BROKEN = "broken"


def classify_one(content: str, patch: PatchDefinition) -> PatchState:
    # replace is checked first so a replace text that still contains the search
    # text is not counted as pending again
    if patch.replace in content:
        return PatchState.ALREADY_APPLIED
    if patch.search in content:
        return PatchState.PENDING
    return PatchState.BROKEN


@dataclass
class Classification:
    """Per-patch states for one artifact against one PatchSet, in PatchSet order."""

    patch_set: PatchSet
    states: Dict[str, PatchState] = field(default_factory=dict)

    def names_in(self, state: PatchState) -> List[str]:
        return [n for n, s in self.states.items() if s is state]

    @property
    def applied(self) -> List[str]:
        return self.names_in(PatchState.ALREADY_APPLIED)

    @property
    def pending(self) -> List[str]:
        return self.names_in(PatchState.PENDING)

    @property
    def broken(self) -> List[str]:
        return self.names_in(PatchState.BROKEN)

    @property
    def usable(self) -> int:
        """Patches that are either applied or can still be applied."""
        return len(self.states) - len(self.broken)

    def pending_patches(self) -> List[PatchDefinition]:
        return [p for p in self.patch_set if self.states.get(p.name) is PatchState.PENDING]

    def applied_markers(self) -> List[str]:
        applied = set(self.applied)
        return [n for n in self.patch_set.markers if n in applied]

    def as_dict(self) -> Dict[str, str]:
        return {n: s.value for n, s in self.states.items()}


def classify(content: str, patch_set: PatchSet) -> Classification:
    """Total over the PatchSet: every patch gets exactly one state."""
    return Classification(
        patch_set=patch_set,
        states={p.name: classify_one(content, p) for p in patch_set},
    )


def classify_best(content: str, patch_sets: Iterable[PatchSet]) -> Classification:
    """
    Classify against each candidate lineage and keep the one with the most
    non-broken patches. Ties keep the earlier lineage.
    """
    best = None
    for ps in patch_sets:
        c = classify(content, ps)
        if best is None or c.usable > best.usable:
            best = c
    if best is None:
        raise ValueError("classify_best() needs at least one patch set")
    return best
