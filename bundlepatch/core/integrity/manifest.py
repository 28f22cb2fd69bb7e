# File: bundlepatch/core/integrity/manifest.py
from __future__ import annotations

"""
Integrity manifest: a JSON document whose namespace object maps artifact paths to
content digests, e.g.

    {
      "nameShort": "App",
      "checksums": {
        "out/main.js": "q0fF...",
        "out/vs/workbench/workbench.desktop.main.css": "Xx1..."
      }
    }

The document is patched as text: only the value string of a matched key is
rewritten, every other byte (ordering, indentation, trailing newline) stays as it
was. Keys are never added or removed.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import MissingPrerequisite
from ..utils.io.textops import read_text_preserve, write_text_preserve


def _json_str_body(s: str) -> str:
    """`s` as it appears between the quotes of a JSON string literal."""
    return json.dumps(s, ensure_ascii=False)[1:-1]


def _entry_rx(key: str) -> re.Pattern:
    return re.compile(r'("' + re.escape(_json_str_body(key)) + r'"\s*:\s*")((?:[^"\\]|\\.)*)(")')


def _skip_string(text: str, i: int) -> int:
    """Given text[i] == '"', return the index just past the closing quote."""
    i += 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i + 1
        i += 1
    return i


def namespace_span(text: str, namespace: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    (start, end) of the body of the `namespace` object, braces excluded.
    With no namespace the whole document is the span. None when the namespace
    object is not present.
    """
    if not namespace:
        return (0, len(text))
    m = re.search(r'"' + re.escape(_json_str_body(namespace)) + r'"\s*:\s*\{', text)
    if not m:
        return None
    start = m.end()
    depth = 1
    i = start
    while i < len(text):
        ch = text[i]
        if ch == '"':
            i = _skip_string(text, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return (start, i)
        i += 1
    return None


@dataclass
class IntegrityManifest:
    text: str
    namespace: Optional[str] = None
    path: Optional[Path] = None

    @classmethod
    def load(cls, path: Path, namespace: Optional[str] = None) -> "IntegrityManifest":
        if not path.is_file():
            raise MissingPrerequisite(f"integrity manifest not found: {path}")
        try:
            text = read_text_preserve(path)
        except (OSError, UnicodeDecodeError) as e:
            raise MissingPrerequisite(f"cannot read integrity manifest {path}: {e}") from e
        return cls(text=text, namespace=namespace, path=path)

    def save(self, path: Optional[Path] = None) -> Path:
        target = path or self.path
        if target is None:
            raise ValueError("IntegrityManifest.save() needs a path")
        write_text_preserve(target, self.text)
        return target

    # ---------- lookup ----------

    def _find(self, key: str) -> Optional[re.Match]:
        span = namespace_span(self.text, self.namespace)
        if span is None:
            return None
        return _entry_rx(key).search(self.text, span[0], span[1])

    def get(self, key: str) -> Optional[str]:
        m = self._find(key)
        return json.loads(f'"{m.group(2)}"') if m else None

    def match_key(self, candidate_keys: Sequence[str]) -> Optional[str]:
        """First candidate key present in the manifest, in candidate order."""
        for key in candidate_keys:
            if self._find(key) is not None:
                return key
        return None

    # ---------- update ----------

    def update_digest(self, candidate_keys: Sequence[str], new_digest: str) -> bool:
        """
        Rewrite the value of the first candidate key found. Returns False when no
        candidate exists; the document is then left unchanged.
        """
        for key in candidate_keys:
            m = self._find(key)
            if m is None:
                continue
            self.text = self.text[: m.start(2)] + _json_str_body(new_digest) + self.text[m.end(2):]
            return True
        return False


@dataclass
class SyncResult:
    updated: Dict[str, str]                # artifact name -> manifest key rewritten
    missing: Dict[str, List[str]]          # artifact name -> candidate keys that all missed

    @property
    def changed(self) -> bool:
        return bool(self.updated)


def sync_digests(manifest: IntegrityManifest, entries: Sequence[Tuple[str, Sequence[str], str]]) -> SyncResult:
    """
    Apply `(artifact_name, candidate_keys, new_digest)` entries to the manifest.
    Misses are reported, never raised.
    """
    updated: Dict[str, str] = {}
    missing: Dict[str, List[str]] = {}
    for name, keys, digest in entries:
        key = manifest.match_key(keys)
        if key is not None and manifest.update_digest([key], digest):
            updated[name] = key
        else:
            missing[name] = list(keys)
    return SyncResult(updated=updated, missing=missing)


__all__ = ["IntegrityManifest", "SyncResult", "namespace_span", "sync_digests"]
