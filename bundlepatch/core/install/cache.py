# File: bundlepatch/core/install/cache.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, List


def clear_caches(dirs: Iterable[Path]) -> List[Path]:
    """Remove each existing cache directory; returns the ones removed."""
    removed: List[Path] = []
    for d in dirs:
        if not d.is_dir():
            continue
        shutil.rmtree(d)
        removed.append(d)
    return removed
