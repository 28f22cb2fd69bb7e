# File: bundlepatch/core/patch_engine/__init__.py
"""
File-only patch engine for generated text artifacts (no CLI).

Main components:
- PatchDefinition / PatchSet / PatchTable: immutable patch data per lineage
- classify / classify_best: per-patch AlreadyApplied / Pending / Broken
- DriftRecovery: fall back to a compatible backup after an unexpected artifact swap
- PatchApplier: all-or-nothing in-memory substitution
- PatchOrchestrator: classify -> recover -> back up -> apply -> sync, plus restore
- EnginePolicy / PatchEngineConfig: run configuration
"""

from .config import ArtifactSpec, EnginePolicy, InstallLayout, ManifestSpec, PatchEngineConfig
from .definitions import PatchDefinition, PatchSet, PatchTable, make_patch, patch_table_from_mapping
from .classifier import Classification, PatchState, classify, classify_best
from .drift import DriftRecovery, drift_suspected
from .applier import ApplyResult, PatchApplier, apply_patches
from .orchestrator import PatchOrchestrator, RunReport, RunState

__all__ = [
    "ArtifactSpec",
    "EnginePolicy",
    "InstallLayout",
    "ManifestSpec",
    "PatchEngineConfig",
    "PatchDefinition",
    "PatchSet",
    "PatchTable",
    "make_patch",
    "patch_table_from_mapping",
    "Classification",
    "PatchState",
    "classify",
    "classify_best",
    "DriftRecovery",
    "drift_suspected",
    "ApplyResult",
    "PatchApplier",
    "apply_patches",
    "PatchOrchestrator",
    "RunReport",
    "RunState",
]
