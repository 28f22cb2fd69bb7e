# File: bundlepatch/core/utils/io/textops.py
from __future__ import annotations

from pathlib import Path

_BOM = "\ufeff"


def read_text_preserve(path: Path) -> str:
    """
    Read UTF-8 text preserving original newlines (no implicit translation).
    A leading byte-order marker is dropped so it never reaches the substitution step.
    """
    with path.open("r", encoding="utf-8", newline="") as f:
        text = f.read()
    return strip_bom(text)


def write_text_preserve(path: Path, content: str) -> None:
    """
    Write UTF-8 text without a byte-order marker and without platform newline
    translation.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(strip_bom(content))


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith(_BOM) else text


def encode_text(content: str) -> bytes:
    """Bytes exactly as `write_text_preserve` puts them on disk."""
    return strip_bom(content).encode("utf-8")
