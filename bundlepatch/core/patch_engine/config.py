# File: bundlepatch/core/patch_engine/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import os

from .definitions import PatchTable


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "off", "no"}


@dataclass
class EnginePolicy:
    """
    Run policy knobs.

    Fields:
      - strict_drift: drift with no compatible backup aborts the run instead of
        continuing with a best-effort partial application.
      - fail_when_nothing_applicable: abort when no patch is pending and none is
        applied; when False such a run ends as a no-op with warnings.
      - backup_timestamp_format: strftime format for backup names; must sort
        lexicographically in time order.
    """
    strict_drift: bool = False
    fail_when_nothing_applicable: bool = True
    backup_timestamp_format: str = "%Y%m%d-%H%M%S"

    @classmethod
    def from_env(cls, base: Optional["EnginePolicy"] = None) -> "EnginePolicy":
        """Allow lightweight overrides via env vars on top of `base`."""
        base = base or cls()
        return cls(
            strict_drift=_flag("BUNDLEPATCH_STRICT_DRIFT", base.strict_drift),
            fail_when_nothing_applicable=_flag(
                "BUNDLEPATCH_FAIL_WHEN_NOTHING_APPLICABLE", base.fail_when_nothing_applicable
            ),
            backup_timestamp_format=base.backup_timestamp_format,
        )


@dataclass
class ArtifactSpec:
    """One patchable file of an installation; `path` is relative to the install root."""
    name: str
    path: str
    manifest_keys: List[str] = field(default_factory=list)


@dataclass
class ManifestSpec:
    path: str
    namespace: Optional[str] = None


@dataclass
class InstallLayout:
    artifacts: List[ArtifactSpec] = field(default_factory=list)
    manifest: Optional[ManifestSpec] = None

    def required_paths(self) -> List[str]:
        return [a.path for a in self.artifacts]


@dataclass
class PatchEngineConfig:
    """
    Everything one run against one installation needs.

    Fields:
      - root: install root the layout paths are relative to.
      - layout: artifacts and manifest locations.
      - table: patch sets for every known lineage.
      - policy: EnginePolicy; defaults when not provided.
    """
    root: Path
    layout: InstallLayout
    table: PatchTable
    policy: EnginePolicy = field(default_factory=EnginePolicy)

    def artifact_path(self, spec: ArtifactSpec) -> Path:
        return self.root / spec.path

    def manifest_path(self) -> Optional[Path]:
        if self.layout.manifest is None:
            return None
        return self.root / self.layout.manifest.path


__all__ = ["EnginePolicy", "ArtifactSpec", "ManifestSpec", "InstallLayout", "PatchEngineConfig"]
