"""
Backup document for Envii.

The backup document is the plaintext payload sealed into an envelope.
It is a full, self-contained snapshot of every scanned project and its
env files at one point in time.

Wire Format (JSON):
    {
        "version": 1,
        "createdAt": "2024-01-15T10:30:00+00:00",
        "deviceId": "laptop-1a2b3c4d",
        "projects": [
            {
                "id": "...", "name": "api", "git": "https://...",
                "fingerprint": "<hex sha256>",
                "fingerprintSource": "git", "fingerprintValue": "https://...",
                "path": "/home/me/work/api",
                "envs": [{"filename": ".env", "checksum": "...", "content": "..."}]
            }
        ]
    }

The project path is informational only; restore never matches on it.
Documents with a version newer than FORMAT_VERSION are rejected rather
than parsed on a best-effort basis.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from envii.crypto.envelope import DECRYPT_FAILED_MESSAGE
from envii.errors import AuthenticationError, UnsupportedFormatError
from envii.scanner.models import Project, SecretFile

FORMAT_VERSION = 1


@dataclass(frozen=True)
class SecretFileSnapshot:
    """An env file as stored in a backup."""

    filename: str
    checksum: str
    content: str

    @classmethod
    def from_secret_file(cls, secret: SecretFile) -> SecretFileSnapshot:
        return cls(
            filename=secret.filename,
            checksum=secret.checksum,
            content=secret.content,
        )

    def verify(self) -> bool:
        """Check that the recorded checksum matches the content."""
        return SecretFile(self.filename, self.checksum, self.content).verify()

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "checksum": self.checksum,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecretFileSnapshot:
        return cls(
            filename=str(data["filename"]),
            checksum=str(data["checksum"]),
            content=str(data["content"]),
        )


@dataclass(frozen=True)
class ProjectSnapshot:
    """A project as stored in a backup."""

    id: str
    name: str
    git: str | None
    fingerprint: str
    path: str
    envs: tuple[SecretFileSnapshot, ...]
    fingerprint_source: str | None = None
    fingerprint_value: str | None = None

    @classmethod
    def from_project(cls, project: Project) -> ProjectSnapshot:
        return cls(
            id=project.id,
            name=project.name,
            git=project.git,
            fingerprint=project.fingerprint.digest,
            path=project.path,
            envs=tuple(SecretFileSnapshot.from_secret_file(s) for s in project.envs),
            fingerprint_source=project.fingerprint.source.value,
            fingerprint_value=project.fingerprint.value,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "git": self.git,
            "fingerprint": self.fingerprint,
            "fingerprintSource": self.fingerprint_source,
            "fingerprintValue": self.fingerprint_value,
            "path": self.path,
            "envs": [env.to_dict() for env in self.envs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectSnapshot:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            git=data.get("git"),
            fingerprint=str(data["fingerprint"]),
            path=str(data.get("path", "")),
            envs=tuple(SecretFileSnapshot.from_dict(e) for e in data.get("envs", [])),
            fingerprint_source=data.get("fingerprintSource"),
            fingerprint_value=data.get("fingerprintValue"),
        )


@dataclass(frozen=True)
class BackupDocument:
    """
    Versioned plaintext payload of one backup.

    Attributes:
        version: Format version, incremented on breaking changes.
        created_at: ISO-8601 creation timestamp (UTC).
        device_id: Identifier of the machine that made the backup.
        projects: Project snapshots in scan order.
    """

    version: int
    created_at: str
    device_id: str
    projects: tuple[ProjectSnapshot, ...]

    @property
    def file_count(self) -> int:
        """Return the number of env files across all projects."""
        return sum(len(p.envs) for p in self.projects)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "deviceId": self.device_id,
            "projects": [p.to_dict() for p in self.projects],
        }

    def to_json(self) -> str:
        """Serialize the document to its JSON wire format."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupDocument:
        """
        Build a document from parsed JSON.

        Raises:
            UnsupportedFormatError: If the version is missing, not an
                                    integer, or newer than FORMAT_VERSION.
        """
        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise UnsupportedFormatError(f"Backup has no valid format version: {version!r}")
        if version < 1 or version > FORMAT_VERSION:
            raise UnsupportedFormatError(
                f"Backup format version {version} is not supported "
                f"(this version of Envii reads up to {FORMAT_VERSION}). "
                "Upgrade Envii to restore it."
            )

        try:
            return cls(
                version=version,
                created_at=str(data.get("createdAt", "")),
                device_id=str(data.get("deviceId", "")),
                projects=tuple(ProjectSnapshot.from_dict(p) for p in data.get("projects", [])),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise UnsupportedFormatError(f"Backup document is malformed: {e}") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> BackupDocument:
        """
        Parse a decrypted document.

        A payload that is not valid JSON is treated exactly like a failed
        decryption.

        Raises:
            AuthenticationError: If the payload is not a JSON object.
            UnsupportedFormatError: If the version is not supported.
        """
        try:
            data = json.loads(text)
        except (ValueError, UnicodeDecodeError) as e:
            raise AuthenticationError(DECRYPT_FAILED_MESSAGE) from e
        if not isinstance(data, dict):
            raise AuthenticationError(DECRYPT_FAILED_MESSAGE)
        return cls.from_dict(data)


def assemble(
    projects: Iterable[Project],
    device_id: str,
    now: datetime | None = None,
) -> BackupDocument:
    """
    Package scanned projects into a backup document.

    Args:
        projects: Projects from a scan.
        device_id: Identifier of the originating machine.
        now: Timestamp override (defaults to the current UTC time).

    Returns:
        Immutable BackupDocument at the current format version.
    """
    timestamp = (now or datetime.now(UTC)).isoformat()
    return BackupDocument(
        version=FORMAT_VERSION,
        created_at=timestamp,
        device_id=device_id,
        projects=tuple(ProjectSnapshot.from_project(p) for p in projects),
    )
