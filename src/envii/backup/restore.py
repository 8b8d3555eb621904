"""
Restore matching for Envii.

Reconciles a decoded backup document against a fresh local scan. Backup
projects are matched to local projects by fingerprint digest only; the
path recorded in the backup is never consulted.

Write Policy:
    - An existing destination file is left untouched unless force is set.
    - Files are written owner read/write only (0600), parent directories
      are created as needed.
    - A failure on one file is recorded and processing continues with the
      next file and the next project.
    - A snapshot whose checksum does not match its content is never
      written.
"""

from __future__ import annotations

import logging
import os
import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from envii.backup.document import BackupDocument, ProjectSnapshot, SecretFileSnapshot
from envii.errors import FilesystemError, IntegrityWarning
from envii.scanner.models import Project

logger = logging.getLogger(__name__)

SECRET_FILE_MODE = 0o600

FileWriter = Callable[[Path, str], None]


class FileStatus(str, Enum):
    """Outcome of restoring one file."""

    RESTORED = "restored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class MatchedProject:
    """A backup project paired with the local directory it restores into."""

    backup_project: ProjectSnapshot
    local_path: str


@dataclass
class MatchResult:
    """Partition of backup projects into matched and unmatched."""

    matched: list[MatchedProject] = field(default_factory=list)
    unmatched: list[ProjectSnapshot] = field(default_factory=list)


@dataclass(frozen=True)
class FileResult:
    """Outcome for a single restored file."""

    project: str
    filename: str
    status: FileStatus
    error: str | None = None

    @property
    def display_path(self) -> str:
        return f"{self.project}/{self.filename}"


@dataclass
class RestoreOutcome:
    """
    Result of applying a match to the local filesystem.

    Exists only for the duration of one restore.
    """

    matched: list[MatchedProject] = field(default_factory=list)
    unmatched: list[ProjectSnapshot] = field(default_factory=list)
    files: list[FileResult] = field(default_factory=list)

    def _count(self, status: FileStatus) -> int:
        return sum(1 for f in self.files if f.status == status)

    @property
    def restored(self) -> int:
        return self._count(FileStatus.RESTORED)

    @property
    def skipped(self) -> int:
        return self._count(FileStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(FileStatus.FAILED)

    @property
    def total(self) -> int:
        return len(self.files)


def write_secret_file(path: Path, content: str) -> None:
    """
    Write content to a file readable and writable by the owner only.

    Creates parent directories as needed. An existing file's permissions
    are tightened as well.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    try:
        os.chmod(path, SECRET_FILE_MODE)
    except OSError:
        # Windows or permission error - continue anyway
        pass


def build_fingerprint_map(projects: Iterable[Project]) -> dict[str, str]:
    """
    Map fingerprint digests to local project paths.

    If two local projects share a digest, the last one wins and a warning
    is logged.
    """
    mapping: dict[str, str] = {}
    for project in projects:
        digest = project.fingerprint.digest
        if digest in mapping and mapping[digest] != project.path:
            logger.warning(
                f"Projects at {mapping[digest]} and {project.path} share a "
                f"fingerprint; using {project.path}"
            )
        mapping[digest] = project.path
    return mapping


def match_projects(
    document: BackupDocument,
    local_projects: Iterable[Project],
) -> MatchResult:
    """
    Pair backup projects with local projects by fingerprint digest.

    Args:
        document: Decoded backup.
        local_projects: Result of scanning the current machine.

    Returns:
        MatchResult with matched pairs and unmatched backup projects.
    """
    fingerprint_map = build_fingerprint_map(local_projects)
    result = MatchResult()

    for project in document.projects:
        local_path = fingerprint_map.get(project.fingerprint)
        if local_path is not None:
            result.matched.append(MatchedProject(project, local_path))
        else:
            result.unmatched.append(project)

    logger.info(
        f"Matched {len(result.matched)} of {len(document.projects)} backup projects"
    )
    return result


def resolve_destination(local_path: str, filename: str) -> Path:
    """
    Compute where a snapshot file is written.

    Containment is checked lexically, so an existing env file that is a
    symlink to a shared file elsewhere is still treated as inside the
    project.

    Raises:
        FilesystemError: If the relative path would escape the project.
    """
    root = os.path.normpath(local_path)
    destination = os.path.normpath(os.path.join(root, filename))
    try:
        inside = destination != root and os.path.commonpath([root, destination]) == root
    except ValueError:
        # Different drives on Windows
        inside = False
    if not inside:
        raise FilesystemError(f"Refusing to write outside project: {filename}", path=filename)
    return Path(destination)


class RestoreMatcher:
    """
    Applies the restore write policy to matched projects.

    Attributes:
        force: Overwrite files that already exist.
        writer: Function used to write a file; injectable for testing.

    Example:
        matcher = RestoreMatcher(force=False)
        outcome = matcher.restore(document, scan(Path.cwd()))
        print(outcome.restored, outcome.skipped, outcome.failed)
    """

    def __init__(self, force: bool = False, writer: FileWriter | None = None) -> None:
        self.force = force
        self.writer = writer or write_secret_file

    def restore(
        self,
        document: BackupDocument,
        local_projects: Iterable[Project],
    ) -> RestoreOutcome:
        """Match a document against local projects and write matched files."""
        return self.apply(match_projects(document, local_projects))

    def apply(self, match: MatchResult) -> RestoreOutcome:
        """Write every file of every matched project."""
        outcome = RestoreOutcome(matched=list(match.matched), unmatched=list(match.unmatched))

        for pair in match.matched:
            for env in pair.backup_project.envs:
                outcome.files.append(self._restore_file(pair, env))

        logger.info(
            f"Restore finished: {outcome.restored} restored, "
            f"{outcome.skipped} skipped, {outcome.failed} failed"
        )
        return outcome

    def _restore_file(self, pair: MatchedProject, env: SecretFileSnapshot) -> FileResult:
        name = pair.backup_project.name

        try:
            if not env.verify():
                message = f"Checksum mismatch for {name}/{env.filename}; not restoring"
                warnings.warn(message, IntegrityWarning, stacklevel=2)
                logger.warning(message)
                return FileResult(name, env.filename, FileStatus.FAILED, error=message)

            destination = resolve_destination(pair.local_path, env.filename)

            # A dangling symlink still counts as an existing file
            exists = destination.exists() or destination.is_symlink()
            if exists and not self.force:
                logger.debug(f"Skipping existing file {destination}")
                return FileResult(name, env.filename, FileStatus.SKIPPED)

            self.writer(destination, env.content)
        except (OSError, UnicodeError, FilesystemError) as e:
            logger.warning(f"Failed to restore {name}/{env.filename}: {e}")
            return FileResult(name, env.filename, FileStatus.FAILED, error=str(e))

        logger.debug(f"Restored {destination}")
        return FileResult(name, env.filename, FileStatus.RESTORED)


def restore_files(match: MatchResult, force: bool = False) -> RestoreOutcome:
    """Apply the default write policy to a match result."""
    return RestoreMatcher(force=force).apply(match)
