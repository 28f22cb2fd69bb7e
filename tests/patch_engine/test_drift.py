from datetime import datetime
from pathlib import Path

from bundlepatch.core.backups.store import BackupStore
from bundlepatch.core.patch_engine.classifier import PatchState, classify, classify_best
from bundlepatch.core.patch_engine.drift import DriftRecovery, drift_suspected, has_anchor

from conftest import NEW, OLD, table, write

PATCHES = [
    {"name": "swap-foo", "search": OLD, "replace": NEW, "lineage_marker": True},
    {"name": "swap-bar", "search": "BAR(1)", "replace": "BAR(0)"},
]


def _ps():
    return table(PATCHES).sets["v1"]["main.js"]


def test_drift_needs_marker_broken_and_no_pending():
    ps = _ps()
    assert drift_suspected(classify(f"{NEW}", ps))
    assert not drift_suspected(classify(f"{NEW} BAR(1)", ps))      # still pending
    assert not drift_suspected(classify(f"{NEW} BAR(0)", ps))      # nothing broken
    assert not drift_suspected(classify("unrelated", ps))           # no marker applied


def test_non_marker_applied_is_not_drift():
    ps = table([
        {"name": "swap-foo", "search": OLD, "replace": NEW},
        {"name": "swap-bar", "search": "BAR(1)", "replace": "BAR(0)"},
    ]).sets["v1"]["main.js"]
    assert not drift_suspected(classify(NEW, ps))


def test_has_anchor():
    pred = has_anchor([OLD, "", NEW])
    assert pred(f"x{NEW}")
    assert not pred("x")


def test_scenario_d_recovers_from_compatible_backup(tmp_path: Path):
    ps = _ps()
    artifact = tmp_path / "main.js"
    write(artifact, f"swapped;{NEW};")
    write(tmp_path / "main.js.backup.20260101-000000", f"pristine;{OLD};BAR(1);")

    content = artifact.read_text(encoding="utf-8")
    before = classify_best(content, [ps])
    assert drift_suspected(before)

    out = DriftRecovery(BackupStore()).recover(artifact, content, before, [ps], table(PATCHES).anchors_for("main.js"))

    assert out.recovered
    assert out.backup.stamp == "20260101-000000"
    assert out.content == f"pristine;{OLD};BAR(1);"
    assert out.classification.states["swap-bar"] is PatchState.PENDING
    assert out.classification.states != before.states
    # recovery works in memory only
    assert artifact.read_text(encoding="utf-8") == content


def test_no_compatible_backup(tmp_path: Path):
    ps = _ps()
    artifact = tmp_path / "main.js"
    write(artifact, f"{NEW}")
    write(tmp_path / "main.js.backup.20260101-000000", "no anchors here")
    c = classify(NEW, ps)

    out = DriftRecovery(BackupStore()).recover(artifact, NEW, c, [ps], [OLD, NEW])
    assert not out.recovered
    assert out.content == NEW
    assert out.classification is c


def test_backup_identical_to_current_is_skipped(tmp_path: Path):
    ps = _ps()
    artifact = tmp_path / "main.js"
    write(artifact, NEW)
    write(tmp_path / "main.js.backup.20260102-000000", NEW)
    write(tmp_path / "main.js.backup.20260101-000000", OLD)

    out = DriftRecovery(BackupStore()).recover(artifact, NEW, classify(NEW, ps), [ps], [OLD, NEW])
    assert out.recovered
    assert out.backup.stamp == "20260101-000000"


def test_one_attempt_per_artifact(tmp_path: Path):
    ps = _ps()
    artifact = tmp_path / "main.js"
    write(artifact, NEW)
    write(tmp_path / "main.js.backup.20260101-000000", OLD)
    recovery = DriftRecovery(BackupStore(clock=lambda: datetime(2026, 1, 1)))

    assert recovery.recover(artifact, NEW, classify(NEW, ps), [ps], [OLD, NEW]).recovered
    assert recovery.attempted(artifact)
    assert not recovery.recover(artifact, NEW, classify(NEW, ps), [ps], [OLD, NEW]).recovered
