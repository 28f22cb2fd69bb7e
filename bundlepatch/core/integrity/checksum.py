# File: bundlepatch/core/integrity/checksum.py
from __future__ import annotations

import base64
import hashlib
from pathlib import Path


def sha256_urlsafe(data: bytes) -> str:
    """
    SHA-256 of `data` rendered as URL-safe base64 with the '=' padding removed.
    This is the form host applications keep in their integrity manifest.
    """
    digest = hashlib.sha256(data).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sha256_file(path: Path) -> str:
    return sha256_urlsafe(path.read_bytes())
