"""
Data models for scanned projects.

These objects are created fresh by every scan and are never persisted on
their own; the backup document takes snapshots of them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from envii.crypto.envelope import sha256_hex


class FingerprintSource(str, Enum):
    """Where a project's identity came from, highest priority first."""

    GIT = "git"
    PACKAGE = "package"
    FOLDER = "folder"


@dataclass(frozen=True)
class Fingerprint:
    """
    Cross-machine identity of a project.

    Attributes:
        source: Which identity source produced the value.
        value: The raw resolved value (remote URL, manifest name, folder).
        digest: Hex SHA-256 of the raw value. Independent of the project's
                absolute path; this is what restore compares.
    """

    source: FingerprintSource
    value: str
    digest: str

    @classmethod
    def create(cls, source: FingerprintSource, value: str) -> Fingerprint:
        """Build a fingerprint and compute its digest."""
        return cls(
            source=source,
            value=value,
            digest=sha256_hex(value),
        )


@dataclass(frozen=True)
class SecretFile:
    """
    A discovered env file.

    Attributes:
        filename: Path relative to the project root, "/" separated.
        checksum: Hex SHA-256 of the UTF-8 content.
        content: File content.
    """

    filename: str
    checksum: str
    content: str

    @classmethod
    def from_content(cls, filename: str, content: str) -> SecretFile:
        """Create a secret file, computing its checksum from content."""
        return cls(filename=filename, checksum=sha256_hex(content), content=content)

    def verify(self) -> bool:
        """Check that the stored checksum still matches the content."""
        return sha256_hex(self.content) == self.checksum


@dataclass
class Project:
    """
    A detected project on the local machine.

    Attributes:
        name: Display name (manifest name or folder name).
        path: Absolute local path. Machine specific, never used for matching.
        fingerprint: Path independent identity.
        git: Remote URL if the project has one.
        envs: Secret files found under the project root.
        id: Opaque identifier assigned at scan time.
    """

    name: str
    path: str
    fingerprint: Fingerprint
    git: str | None = None
    envs: list[SecretFile] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class ScanResult:
    """Result of scanning a directory tree."""

    projects: list[Project]

    @property
    def total_env_files(self) -> int:
        """Return the number of env files across all projects."""
        return sum(len(p.envs) for p in self.projects)
