import json
from pathlib import Path

import pytest

from bundlepatch.core.configuration.loader import ConfigError
from bundlepatch.core.install.settings import disable_auto_update, read_settings


def test_creates_missing_document(tmp_path: Path):
    path = tmp_path / "User" / "settings.json"
    assert disable_auto_update(path, "update.mode", "none")
    assert json.loads(path.read_text(encoding="utf-8")) == {"update.mode": "none"}


def test_keeps_other_keys(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text('{"editor.fontSize": 14, "update.mode": "default"}', encoding="utf-8")
    assert disable_auto_update(path, "update.mode", "none")
    assert read_settings(path) == {"editor.fontSize": 14, "update.mode": "none"}


def test_already_set_is_not_rewritten(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text('{"update.mode": "none"}', encoding="utf-8")
    assert not disable_auto_update(path, "update.mode", "none")
    assert path.read_text(encoding="utf-8") == '{"update.mode": "none"}'


def test_bom_and_empty_documents(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_bytes(b'\xef\xbb\xbf{"a": 1}')
    assert read_settings(path) == {"a": 1}
    path.write_text("  \n", encoding="utf-8")
    assert read_settings(path) == {}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
def test_invalid_documents(tmp_path: Path, raw: str):
    path = tmp_path / "settings.json"
    path.write_text(raw, encoding="utf-8")
    with pytest.raises(ConfigError):
        disable_auto_update(path, "update.mode", "none")
