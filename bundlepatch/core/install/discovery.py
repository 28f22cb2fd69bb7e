# File: bundlepatch/core/install/discovery.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from ..patch_engine.config import InstallLayout


def is_installation(root: Path, layout: InstallLayout) -> bool:
    """An installation is a directory holding every configured artifact."""
    if not root.is_dir():
        return False
    return all((root / rel).is_file() for rel in layout.required_paths())


def discover_installations(candidates: Iterable[Path], layout: InstallLayout) -> List[Path]:
    """
    Probe conventional install roots in order and return the ones that look like
    installations. Duplicates (same resolved path) are reported once.
    """
    found: List[Path] = []
    seen = set()
    for cand in candidates:
        try:
            key = cand.resolve()
        except OSError:
            continue
        if key in seen:
            continue
        seen.add(key)
        if is_installation(cand, layout):
            found.append(cand)
    return found
