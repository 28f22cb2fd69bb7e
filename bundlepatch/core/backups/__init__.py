from .store import Backup, BackupStore

__all__ = ["Backup", "BackupStore"]
