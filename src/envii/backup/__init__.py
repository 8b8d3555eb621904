"""
Backup and restore functionality for Envii.

Usage:
    from envii.backup import BackupManager

    manager = BackupManager(client, device_id)

    # Back up every env file under a directory
    result = manager.create_backup(Path.cwd(), phrase)

    # Restore into matching local projects
    result = manager.restore_backup(Path.cwd(), phrase, force=False)
"""

from envii.backup.document import (
    FORMAT_VERSION,
    BackupDocument,
    ProjectSnapshot,
    SecretFileSnapshot,
    assemble,
)
from envii.backup.manager import (
    BackupManager,
    BackupResult,
    ListResult,
    RestoreResult,
)
from envii.backup.restore import (
    FileResult,
    FileStatus,
    MatchedProject,
    MatchResult,
    RestoreMatcher,
    RestoreOutcome,
    build_fingerprint_map,
    match_projects,
    restore_files,
)

__all__ = [
    # Document
    "BackupDocument",
    "ProjectSnapshot",
    "SecretFileSnapshot",
    "assemble",
    "FORMAT_VERSION",
    # Restore
    "RestoreMatcher",
    "RestoreOutcome",
    "MatchResult",
    "MatchedProject",
    "FileResult",
    "FileStatus",
    "build_fingerprint_map",
    "match_projects",
    "restore_files",
    # Manager
    "BackupManager",
    "BackupResult",
    "RestoreResult",
    "ListResult",
]
