"""
Remote vault store client for Envii.
"""

from envii.api.client import (
    BackupPage,
    BackupRecord,
    LatestBackup,
    VaultClient,
)

__all__ = [
    "VaultClient",
    "BackupRecord",
    "BackupPage",
    "LatestBackup",
]
