# File: bundlepatch/core/patch_engine/applier.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

from .definitions import PatchDefinition
from ..errors import ConfigurationDefect


# ------------------------------------------------------------------------------
# Result DTO
# ------------------------------------------------------------------------------
@dataclass
class ApplyResult:
    content: str
    replacements: Dict[str, int] = field(default_factory=dict)  # patch name -> occurrences replaced

    @property
    def changed(self) -> bool:
        return any(self.replacements.values())


# ------------------------------------------------------------------------------
# Applier (pure, in-memory)
# ------------------------------------------------------------------------------
class PatchApplier:
    """
    Apply pending patches to in-memory content.

    A batch is validated in full before any substitution is computed, and the
    caller only gets new content once **every** artifact in the batch has been
    patched. Nothing is written here; persisting the result is the caller's job.

    Substitution semantics:
      - patches run in PatchSet order; later patches see earlier replacements
      - each patch replaces every occurrence of `search`, not just the first
    """

    def check(self, patches: Sequence[PatchDefinition]) -> None:
        """Re-assert the length invariant at apply time."""
        bad = [p.name for p in patches if not p.length_ok()]
        if bad:
            raise ConfigurationDefect(
                "length invariant violated at apply time for: " + ", ".join(bad)
            )

    def apply(self, content: str, patches: Sequence[PatchDefinition]) -> ApplyResult:
        self.check(patches)
        return self._apply_checked(content, patches)

    def apply_batch(
        self, batch: Mapping[str, Tuple[str, Sequence[PatchDefinition]]]
    ) -> Dict[str, ApplyResult]:
        """
        Apply several artifacts at once: `{artifact: (content, pending_patches)}`.
        Either every artifact gets a result or the whole batch raises.
        """
        all_patches: List[PatchDefinition] = []
        for _, patches in batch.values():
            all_patches.extend(patches)
        self.check(all_patches)

        return {name: self._apply_checked(content, patches) for name, (content, patches) in batch.items()}

    # ---------- Internal helpers ----------

    def _apply_checked(self, content: str, patches: Sequence[PatchDefinition]) -> ApplyResult:
        out = content
        counts: Dict[str, int] = {}
        for p in patches:
            n = out.count(p.search)
            counts[p.name] = n
            if n:
                out = out.replace(p.search, p.replace)
        return ApplyResult(content=out, replacements=counts)


def apply_patches(content: str, patches: Sequence[PatchDefinition]) -> str:
    """Convenience wrapper returning only the patched text."""
    return PatchApplier().apply(content, patches).content
