from datetime import datetime
from pathlib import Path

import pytest

from bundlepatch.core.backups import store as store_mod
from bundlepatch.core.backups.store import BackupStore
from bundlepatch.core.errors import BackupFailure


def _write(p: Path, content: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def _clock(*stamps: datetime):
    it = iter(stamps)
    return lambda: next(it)


def test_snapshot_all_shares_one_stamp(tmp_path: Path):
    a = tmp_path / "app" / "main.js"
    m = tmp_path / "product.json"
    _write(a, "A")
    _write(m, "{}")
    store = BackupStore(clock=_clock(datetime(2026, 10, 19, 10, 15, 0)))

    backups = store.snapshot_all([a, m])

    assert backups[a].path == tmp_path / "app" / "main.js.backup.20261019-101500"
    assert backups[m].path == tmp_path / "product.json.backup.20261019-101500"
    assert backups[a].path.read_text(encoding="utf-8") == "A"
    assert backups[a].size == 1


def test_stamp_collision_advances_clock(tmp_path: Path):
    a = tmp_path / "main.js"
    _write(a, "A")
    now = datetime(2026, 10, 19, 10, 15, 0)
    store = BackupStore(clock=_clock(now, now))
    store.snapshot_all([a])
    second = store.snapshot_all([a])
    assert second[a].stamp == "20261019-101501"


def test_list_newest_first_and_restore(tmp_path: Path):
    a = tmp_path / "main.js"
    _write(a, "v1")
    store = BackupStore(clock=_clock(datetime(2026, 1, 1, 0, 0, 0), datetime(2026, 1, 2, 0, 0, 0)))
    store.snapshot_all([a])
    _write(a, "v2")
    store.snapshot_all([a])
    _write(a, "patched")

    stamps = [b.stamp for b in store.list_backups(a)]
    assert stamps == ["20260102-000000", "20260101-000000"]
    assert store.latest(a).stamp == "20260102-000000"

    assert store.restore(a) == "v2"
    assert a.read_text(encoding="utf-8") == "v2"


def test_list_ignores_other_artifacts(tmp_path: Path):
    a = tmp_path / "main.js"
    _write(a, "x")
    _write(tmp_path / "main.json.backup.20260101-000000", "nope")
    _write(tmp_path / "other.js.backup.20260101-000000", "nope")
    assert BackupStore().list_backups(a) == []


def test_restore_without_backup_returns_none(tmp_path: Path):
    a = tmp_path / "main.js"
    _write(a, "x")
    assert BackupStore().restore(a) is None
    assert a.read_text(encoding="utf-8") == "x"


def test_list_compatible_orders_by_size_then_recency(tmp_path: Path):
    a = tmp_path / "main.js"
    _write(a, "current")
    _write(tmp_path / "main.js.backup.20260101-000000", "ANCHOR-long-old")
    _write(tmp_path / "main.js.backup.20260103-000000", "ANCHOR-long-new")
    _write(tmp_path / "main.js.backup.20260105-000000", "ANCHOR")
    _write(tmp_path / "main.js.backup.20260107-000000", "no anchor at all here, bigger")

    found = BackupStore().list_compatible(a, lambda text: "ANCHOR" in text)
    assert [b.stamp for b in found] == ["20260103-000000", "20260101-000000", "20260105-000000"]


def test_snapshot_missing_file_fails(tmp_path: Path):
    with pytest.raises(BackupFailure):
        BackupStore().snapshot_all([tmp_path / "missing.js"])


def test_snapshot_permission_denied_is_backup_failure(tmp_path: Path, monkeypatch):
    a = tmp_path / "main.js"
    _write(a, "x")

    def _deny(src, dst, *args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(store_mod.shutil, "copy2", _deny)
    with pytest.raises(BackupFailure):
        BackupStore().snapshot_all([a])
    assert a.read_text(encoding="utf-8") == "x"


def test_glob_characters_in_artifact_name(tmp_path: Path):
    a = tmp_path / "main[1].js"
    _write(a, "x")
    _write(tmp_path / "main[1].js.backup.20260101-000000", "old")
    _write(tmp_path / "main1.js.backup.20260102-000000", "other")

    found = BackupStore().list_backups(a)
    assert [b.path.name for b in found] == ["main[1].js.backup.20260101-000000"]
    assert BackupStore().restore(a) == "old"
