from .checksum import sha256_file, sha256_urlsafe
from .manifest import IntegrityManifest, SyncResult, sync_digests

__all__ = ["sha256_file", "sha256_urlsafe", "IntegrityManifest", "SyncResult", "sync_digests"]
