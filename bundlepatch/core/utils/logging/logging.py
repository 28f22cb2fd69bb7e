# File: bundlepatch/core/utils/logging/logging.py
from __future__ import annotations

from typing import List, Tuple


def _one_line(s: str, max_len: int = 160) -> str:
    s = " ".join((s or "").split())
    return s[:max_len] + ("…" if len(s) > max_len else "")


class ConsoleLog:
    """
    Tagged console logger. Every line is also kept in `lines` so a worker's
    output can be replayed or inspected after the run.
    """

    def __init__(self, tag: str, *, quiet: bool = False):
        self.tag = tag
        self.quiet = quiet
        self.lines: List[Tuple[str, str]] = []

    def _emit(self, level: str, marker: str, msg: str) -> None:
        line = f"[{self.tag} {marker}] {_one_line(msg)}"
        self.lines.append((level, line))
        if not self.quiet:
            print(line)

    def info(self, msg: str):
        self._emit("info", "✅", msg)

    def warn(self, msg: str):
        self._emit("warn", "⚠️", msg)

    def error(self, msg: str):
        self._emit("error", "❌", msg)

    def stage(self, emoji: str, msg: str):
        self._emit("stage", emoji, msg)
