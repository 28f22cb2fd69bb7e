# File: bundlepatch/core/install/settings.py
from __future__ import annotations

"""
Host settings document (JSON object, e.g. an editor's user settings.json).

Only used to switch off the host's self-update so it stops replacing patched
artifacts behind our back.
"""

import json
from pathlib import Path
from typing import Any, Dict

from ..configuration.loader import ConfigError


def read_settings(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    raw = path.read_text(encoding="utf-8-sig")
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"settings document is not valid JSON: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"settings document is not a JSON object: {path}")
    return data


def disable_auto_update(path: Path, key: str, value: Any) -> bool:
    """
    Set `key` to `value`, creating the document (and its folder) if absent.
    Returns True when the document was written.
    """
    data = read_settings(path)
    if path.exists() and key in data and data[key] == value:
        return False
    data[key] = value
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=4, ensure_ascii=False) + "\n", encoding="utf-8")
    return True
