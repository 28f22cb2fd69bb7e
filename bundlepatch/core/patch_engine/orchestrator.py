# File: bundlepatch/core/patch_engine/orchestrator.py
"""
Orchestrator for one installation: classify -> (recover) -> back up -> apply -> sync.

States
------
START -> CLASSIFIED -> ALL_DONE                       (nothing pending, no drift)
START -> CLASSIFIED -> RECOVERING -> CLASSIFIED ...   (drift, at most once per artifact)
START -> CLASSIFIED -> NEEDS_WORK -> BACKED_UP -> APPLIED -> SYNCED -> DONE
any failure before BACKED_UP                -> ABORTED (nothing to restore)
any failure after BACKED_UP                 -> ABORTED (every snapshot of the run restored)

Restore mode skips classification entirely and copies the newest backup of every
artifact (and the manifest) back in place.

Runs never raise: the caller gets a RunReport whose `outcome` tells what happened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..backups.store import Backup, BackupStore
from ..integrity.checksum import sha256_urlsafe
from ..integrity.manifest import IntegrityManifest, sync_digests
from ..utils.logging import ConsoleLog
from .applier import ApplyResult, PatchApplier
from .classifier import Classification, classify_best
from .config import ArtifactSpec, PatchEngineConfig
from .drift import DriftRecovery, drift_suspected
from ..errors import (
    BACKUP_MISSING,
    CLASSIFICATION_AMBIGUITY,
    DRIFT_UNRECOVERABLE,
    MANIFEST_KEY_NOT_FOUND,
    ApplyFailure,
    DriftUnrecoverableError,
    EngineWarning,
    MissingPrerequisite,
    NothingApplicable,
    PatchEngineError,
)
from ..utils.io.textops import encode_text, read_text_preserve, write_text_preserve


class RunState(str, Enum):
    START = "start"
    CLASSIFIED = "classified"
    ALL_DONE = "all_done"
    RECOVERING = "recovering"
    NEEDS_WORK = "needs_work"
    BACKED_UP = "backed_up"
    APPLIED = "applied"
    SYNCED = "synced"
    DONE = "done"
    ABORTED = "aborted"


OUTCOME_ALL_DONE = "all_done"
OUTCOME_DONE = "done"
OUTCOME_DRY_RUN = "dry_run"
OUTCOME_RESTORED = "restored"
OUTCOME_ABORTED = "aborted"


# ------------------------------------------------------------------------------
# Run DTOs
# ------------------------------------------------------------------------------
@dataclass
class ArtifactRun:
    spec: ArtifactSpec
    path: Path
    disk_content: str
    content: str
    classification: Classification
    recovered_from: Optional[Path] = None

    @property
    def needs_write(self) -> bool:
        return bool(self.classification.pending) or self.content != self.disk_content


@dataclass
class RunReport:
    target: str
    mode: str                                   # "patch" | "restore"
    outcome: str = ""
    trail: List[str] = field(default_factory=list)
    states: Dict[str, Dict[str, str]] = field(default_factory=dict)
    lineages: Dict[str, str] = field(default_factory=dict)
    warnings: List[EngineWarning] = field(default_factory=list)
    error: Optional[str] = None
    backups: List[str] = field(default_factory=list)
    restored: List[str] = field(default_factory=list)
    manifest_keys: Dict[str, str] = field(default_factory=dict)
    replacements: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome != OUTCOME_ABORTED

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def summary(self) -> str:
        parts = [f"{self.mode} {self.outcome}"]
        if self.replacements:
            n = sum(len([v for v in r.values() if v]) for r in self.replacements.values())
            parts.append(f"{n} patch(es) applied")
        if self.restored:
            parts.append(f"{len(self.restored)} file(s) restored")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")
        if self.error:
            parts.append(f"error: {self.error}")
        return "; ".join(parts)


# ------------------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------------------
class PatchOrchestrator:
    def __init__(
        self,
        cfg: PatchEngineConfig,
        *,
        store: Optional[BackupStore] = None,
        applier: Optional[PatchApplier] = None,
        log: Optional[ConsoleLog] = None,
        dry_run: bool = False,
    ):
        self.cfg = cfg
        self.store = store or BackupStore(timestamp_format=cfg.policy.backup_timestamp_format)
        self.applier = applier or PatchApplier()
        self.log = log or ConsoleLog("bundlepatch")
        self.dry_run = dry_run
        self.report = RunReport(target=str(cfg.root), mode="patch")

    # ---------- state helpers ----------

    def _to(self, state: RunState) -> None:
        self.report.trail.append(state.value)

    def _warn(self, code: str, subject: str, message: str, **details) -> None:
        w = EngineWarning(code=code, subject=subject, message=message, details=dict(details))
        self.report.warnings.append(w)
        self.log.warn(str(w))

    def _abort(self, exc: BaseException) -> RunReport:
        self._to(RunState.ABORTED)
        self.report.outcome = OUTCOME_ABORTED
        self.report.error = f"{type(exc).__name__}: {exc}"
        self.log.error(f"run aborted: {self.report.error}")
        return self.report

    # ---------- patch workflow ----------

    def run(self) -> RunReport:
        self.report = RunReport(target=str(self.cfg.root), mode="patch")
        self._to(RunState.START)
        self.log.stage("🔍", f"target: {self.cfg.root}")
        try:
            runs = self._load_artifacts()
            manifest = self._load_manifest()
            self._classify(runs)
            self._recover_drift(runs)
            self._report_broken(runs)

            work = [r for r in runs if r.needs_write]
            if not work:
                return self._finish_without_work(runs)

            self._to(RunState.NEEDS_WORK)
            if self.dry_run:
                results = self._compute(work)
                self.report.outcome = OUTCOME_DRY_RUN
                self.log.info(f"dry run: {len(results)} artifact(s) would change")
                return self.report
        except PatchEngineError as e:
            return self._abort(e)

        try:
            backups = self._backup(work, manifest)
        except PatchEngineError as e:
            return self._abort(e)
        self._to(RunState.BACKED_UP)

        try:
            results = self._compute(work)
            self._to(RunState.APPLIED)
            self._write(work, results)
            if manifest is not None:
                self._sync(manifest, work, results)
            self._to(RunState.SYNCED)
        except Exception as e:
            self._rollback(backups)
            return self._abort(e)

        self._to(RunState.DONE)
        self.report.outcome = OUTCOME_DONE
        self.log.info(self.report.summary())
        return self.report

    def _load_artifacts(self) -> List[ArtifactRun]:
        runs: List[ArtifactRun] = []
        for spec in self.cfg.layout.artifacts:
            path = self.cfg.artifact_path(spec)
            if not path.is_file():
                raise MissingPrerequisite(f"artifact '{spec.name}' not found at {path}")
            sets = self.cfg.table.sets_for(spec.name)
            if not sets:
                self.log.info(f"{spec.name}: no patch set configured, skipping")
                continue
            try:
                content = read_text_preserve(path)
            except (OSError, UnicodeDecodeError) as e:
                raise MissingPrerequisite(f"cannot read artifact '{spec.name}': {e}") from e
            runs.append(ArtifactRun(
                spec=spec,
                path=path,
                disk_content=content,
                content=content,
                classification=classify_best(content, sets),
            ))
        if not runs:
            raise NothingApplicable("no configured artifact has a patch set")
        return runs

    def _load_manifest(self) -> Optional[IntegrityManifest]:
        path = self.cfg.manifest_path()
        if path is None:
            return None
        return IntegrityManifest.load(path, namespace=self.cfg.layout.manifest.namespace)

    def _classify(self, runs: List[ArtifactRun]) -> None:
        for r in runs:
            self._record(r)
            c = r.classification
            self.log.info(
                f"{r.spec.name} [{c.patch_set.lineage}]: "
                f"{len(c.applied)} applied, {len(c.pending)} pending, {len(c.broken)} broken"
            )
        self._to(RunState.CLASSIFIED)

    def _record(self, r: ArtifactRun) -> None:
        self.report.states[r.spec.name] = r.classification.as_dict()
        self.report.lineages[r.spec.name] = r.classification.patch_set.lineage

    def _recover_drift(self, runs: List[ArtifactRun]) -> None:
        suspects = [r for r in runs if drift_suspected(r.classification)]
        if not suspects:
            return
        self._to(RunState.RECOVERING)
        recovery = DriftRecovery(self.store)
        for r in suspects:
            self.log.stage("🧭", f"{r.spec.name}: drift suspected, searching backups")
            out = recovery.recover(
                r.path,
                r.content,
                r.classification,
                self.cfg.table.sets_for(r.spec.name),
                self.cfg.table.anchors_for(r.spec.name),
            )
            if out.recovered:
                r.content = out.content
                r.classification = out.classification
                r.recovered_from = out.backup.path
                self._record(r)
                self.log.info(f"{r.spec.name}: recovered content from {out.backup.path.name}")
                continue
            msg = "drift detected and no compatible backup was found"
            if self.cfg.policy.strict_drift:
                raise DriftUnrecoverableError(f"{r.spec.name}: {msg}")
            self._warn(DRIFT_UNRECOVERABLE, r.spec.name, msg, broken=r.classification.broken)
        self._to(RunState.CLASSIFIED)

    def _report_broken(self, runs: List[ArtifactRun]) -> None:
        for r in runs:
            for name in r.classification.broken:
                self._warn(
                    CLASSIFICATION_AMBIGUITY,
                    name,
                    f"neither search nor replace text found in {r.spec.name}",
                    artifact=r.spec.name,
                    lineage=r.classification.patch_set.lineage,
                )

    def _finish_without_work(self, runs: List[ArtifactRun]) -> RunReport:
        if not any(r.classification.applied for r in runs):
            err = NothingApplicable("no patch can be applied and none is already applied")
            if self.cfg.policy.fail_when_nothing_applicable:
                raise err
            self.log.warn(str(err))
        self._to(RunState.ALL_DONE)
        self.report.outcome = OUTCOME_ALL_DONE
        self.log.info("all patches already applied; nothing to do")
        return self.report

    def _backup(self, work: List[ArtifactRun], manifest: Optional[IntegrityManifest]) -> Dict[Path, Backup]:
        paths = [r.path for r in work]
        if manifest is not None and manifest.path is not None:
            paths.append(manifest.path)
        backups = self.store.snapshot_all(paths)
        self.report.backups = [str(b.path) for b in backups.values()]
        self.log.stage("💾", f"backed up {len(backups)} file(s)")
        return backups

    def _compute(self, work: List[ArtifactRun]) -> Dict[str, ApplyResult]:
        batch = {r.spec.name: (r.content, r.classification.pending_patches()) for r in work}
        results = self.applier.apply_batch(batch)
        for name, res in results.items():
            self.report.replacements[name] = dict(res.replacements)
        return results

    def _write(self, work: List[ArtifactRun], results: Dict[str, ApplyResult]) -> None:
        for r in work:
            try:
                write_text_preserve(r.path, results[r.spec.name].content)
            except OSError as e:
                raise ApplyFailure(f"cannot write {r.path}: {e}") from e
            self.log.info(f"{r.spec.name}: written")

    def _sync(self, manifest: IntegrityManifest, work: List[ArtifactRun], results: Dict[str, ApplyResult]) -> None:
        entries: List[Tuple[str, List[str], str]] = []
        for r in work:
            digest = sha256_urlsafe(encode_text(results[r.spec.name].content))
            entries.append((r.spec.name, list(r.spec.manifest_keys), digest))
        res = sync_digests(manifest, entries)
        for name, keys in res.missing.items():
            self._warn(
                MANIFEST_KEY_NOT_FOUND,
                name,
                "no manifest key matched; tried " + ", ".join(keys or ["<none>"]),
                candidates=keys,
            )
        self.report.manifest_keys = dict(res.updated)
        if res.changed:
            try:
                manifest.save()
            except OSError as e:
                raise ApplyFailure(f"cannot write manifest {manifest.path}: {e}") from e
            self.log.info(f"manifest updated: {', '.join(res.updated.values())}")

    def _rollback(self, backups: Dict[Path, Backup]) -> None:
        for original, backup in backups.items():
            try:
                self.store.restore_snapshot(backup, original)
                self.report.restored.append(str(original))
            except OSError as e:
                self.log.error(f"rollback failed for {original}: {e}")
        self.log.warn(f"rolled back {len(self.report.restored)} of {len(backups)} file(s)")

    # ---------- restore workflow ----------

    def restore(self) -> RunReport:
        self.report = RunReport(target=str(self.cfg.root), mode="restore")
        self._to(RunState.START)
        targets: List[Tuple[str, Path]] = [
            (spec.name, self.cfg.artifact_path(spec)) for spec in self.cfg.layout.artifacts
        ]
        manifest_path = self.cfg.manifest_path()
        if manifest_path is not None:
            targets.append((manifest_path.name, manifest_path))

        for name, path in targets:
            try:
                content = self.store.restore(path)
            except OSError as e:
                return self._abort(e)
            if content is None:
                self._warn(BACKUP_MISSING, name, f"no backup found next to {path}")
                continue
            self.report.restored.append(str(path))
            self.log.info(f"{name}: restored newest backup")

        if not self.report.restored:
            return self._abort(MissingPrerequisite("no backups found to restore"))
        self._to(RunState.BACKED_UP)
        self._to(RunState.DONE)
        self.report.outcome = OUTCOME_RESTORED
        self.log.info(self.report.summary())
        return self.report


__all__ = [
    "PatchOrchestrator",
    "RunReport",
    "RunState",
    "ArtifactRun",
    "OUTCOME_ALL_DONE",
    "OUTCOME_DONE",
    "OUTCOME_DRY_RUN",
    "OUTCOME_RESTORED",
    "OUTCOME_ABORTED",
]
