"""
Backup and restore manager for Envii.

Drives the full pipelines:

    backup:  scan -> assemble -> seal (fresh salt and nonce) -> upload
    restore: download -> extract salt -> derive key -> unseal -> parse
             -> local scan -> match -> write

The remote client and device identifier are passed in explicitly; the
manager holds no process-wide state. Results are returned as values
carrying an ErrorKind instead of raising, so callers branch on the kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from envii.api.client import BackupPage, BackupRecord, VaultClient
from envii.backup.document import BackupDocument, assemble
from envii.backup.restore import RestoreMatcher, RestoreOutcome
from envii.crypto.envelope import compressed_sizes, extract_salt, seal_with_phrase, unseal
from envii.crypto.recovery import derive_key, require_valid_phrase
from envii.errors import EnviiError, ErrorKind
from envii.scanner.filesystem import scan_directory

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Result of a backup operation."""

    success: bool
    record: BackupRecord | None = None
    project_count: int = 0
    file_count: int = 0
    original_size: int = 0
    compressed_size: int = 0
    error: str | None = None
    error_kind: ErrorKind | None = None


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    success: bool
    document: BackupDocument | None = None
    outcome: RestoreOutcome | None = None
    backup_created_at: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None


@dataclass
class ListResult:
    """Result of listing backups."""

    success: bool
    page: BackupPage | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None


class BackupManager:
    """
    Runs backup, restore and list operations against one vault.

    Example:
        client = VaultClient(settings.api_url, vault_identifier(phrase))
        manager = BackupManager(client, device_id=settings.device_id)
        result = manager.create_backup(Path.cwd(), phrase)
    """

    def __init__(self, client: VaultClient, device_id: str) -> None:
        """
        Initialize backup manager.

        Args:
            client: Client for the vault store.
            device_id: Identifier of this machine.
        """
        self.client = client
        self.device_id = device_id

    def create_backup(self, root: Path, phrase: str) -> BackupResult:
        """
        Back up every env file under a directory tree.

        Args:
            root: Directory to scan.
            phrase: Recovery phrase used to encrypt.

        Returns:
            BackupResult with success status and backup details.
        """
        try:
            phrase = require_valid_phrase(phrase)

            scan_result = scan_directory(Path(root))
            if scan_result.total_env_files == 0:
                return BackupResult(
                    success=False,
                    project_count=len(scan_result.projects),
                    error=f"No env files found under {root}",
                    error_kind=ErrorKind.INPUT,
                )

            document = assemble(scan_result.projects, self.device_id)
            plaintext = document.to_json()
            original_size, compressed_size = compressed_sizes(plaintext)

            envelope = seal_with_phrase(plaintext, phrase)
            record = self.client.create_backup(envelope, self.device_id)

            logger.info(
                f"Backup created: {record.id} ({len(document.projects)} projects, "
                f"{document.file_count} files, {compressed_size:,} bytes compressed)"
            )

            return BackupResult(
                success=True,
                record=record,
                project_count=len(document.projects),
                file_count=document.file_count,
                original_size=original_size,
                compressed_size=compressed_size,
            )

        except EnviiError as e:
            logger.error(f"Backup failed: {e}")
            return BackupResult(
                success=False,
                error=str(e),
                error_kind=ErrorKind.from_exception(e),
            )

    def fetch_document(self, phrase: str) -> tuple[BackupDocument | None, str | None]:
        """
        Download and decrypt the latest backup.

        Returns:
            Tuple of (document, created_at); (None, None) if the vault is empty.

        Raises:
            NetworkError: If the download fails.
            AuthenticationError: If the envelope cannot be opened.
            UnsupportedFormatError: If the document version is unknown.
        """
        latest = self.client.get_latest_backup()
        if latest is None:
            return None, None

        salt = extract_salt(latest.blob)
        key = derive_key(phrase, salt)
        document = BackupDocument.from_json(unseal(latest.blob, key))
        logger.info(
            f"Decrypted backup from {latest.created_at}: "
            f"{len(document.projects)} projects"
        )
        return document, latest.created_at

    def restore_backup(self, root: Path, phrase: str, force: bool = False) -> RestoreResult:
        """
        Restore env files from the latest backup into local projects.

        Args:
            root: Directory to scan for local projects.
            phrase: Recovery phrase used to decrypt.
            force: Overwrite existing env files.

        Returns:
            RestoreResult with the per-file outcome.
        """
        try:
            phrase = require_valid_phrase(phrase)

            document, created_at = self.fetch_document(phrase)
            if document is None:
                return RestoreResult(
                    success=False,
                    error="No backups found. Run `envii backup` first.",
                    error_kind=ErrorKind.INPUT,
                )

            local = scan_directory(Path(root))
            outcome = RestoreMatcher(force=force).restore(document, local.projects)

            return RestoreResult(
                success=True,
                document=document,
                outcome=outcome,
                backup_created_at=created_at,
            )

        except EnviiError as e:
            logger.error(f"Restore failed: {e}")
            return RestoreResult(
                success=False,
                error=str(e),
                error_kind=ErrorKind.from_exception(e),
            )

    def list_backups(self, limit: int = 10, offset: int = 0) -> ListResult:
        """List backups stored in the vault."""
        try:
            return ListResult(success=True, page=self.client.list_backups(limit, offset))
        except EnviiError as e:
            logger.error(f"Listing backups failed: {e}")
            return ListResult(
                success=False,
                error=str(e),
                error_kind=ErrorKind.from_exception(e),
            )
