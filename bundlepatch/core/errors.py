# File: bundlepatch/core/errors.py
from __future__ import annotations

"""
Error taxonomy for the patch engine.

Fatal conditions are exceptions; the orchestrator unwinds them into an aborted
run report. Non-fatal conditions are EngineWarning records that are collected
during the run and reported at the end.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


# -------------------------- Exceptions --------------------------

class PatchEngineError(RuntimeError):
    """Base class for fatal patch engine failures."""


class ConfigurationDefect(PatchEngineError):
    """A patch definition or table is invalid (e.g. length invariant violated)."""


class MissingPrerequisite(PatchEngineError):
    """A target artifact or the integrity manifest does not exist."""


class BackupFailure(PatchEngineError):
    """A snapshot could not be created; nothing has been mutated."""


class ApplyFailure(PatchEngineError):
    """Writing patched content or the manifest failed; the run is rolled back."""


class NothingApplicable(PatchEngineError):
    """No patch is pending and none is applied for any artifact."""


class DriftUnrecoverableError(PatchEngineError):
    """Drift detected with no compatible backup, raised only under strict drift policy."""


# -------------------------- Warnings --------------------------

CLASSIFICATION_AMBIGUITY = "ClassificationAmbiguity"
DRIFT_UNRECOVERABLE = "DriftUnrecoverable"
MANIFEST_KEY_NOT_FOUND = "ManifestKeyNotFound"
BACKUP_MISSING = "BackupMissing"


@dataclass
class EngineWarning:
    code: str
    subject: str           # patch name, manifest key or artifact name
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}[{self.subject}]: {self.message}"


__all__ = [
    "PatchEngineError",
    "ConfigurationDefect",
    "MissingPrerequisite",
    "BackupFailure",
    "ApplyFailure",
    "NothingApplicable",
    "DriftUnrecoverableError",
    "EngineWarning",
    "CLASSIFICATION_AMBIGUITY",
    "DRIFT_UNRECOVERABLE",
    "MANIFEST_KEY_NOT_FOUND",
    "BACKUP_MISSING",
]
