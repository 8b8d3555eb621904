"""
Filesystem scanner for Envii.

Walks a directory tree, detects project roots and collects env files for
each project.

Traversal Rules:
    - Depth-first, pre-order, children in sorted name order.
    - A directory holding any project marker is a project. Its subtree is
      not searched for nested projects: one project is one atomic unit.
    - Env file discovery inside a project walks the whole subtree with no
      project boundary, so env files of nested manifests are included.
    - Deny-listed dependency/build directories and hidden directories are
      never entered.
    - Unreadable directories and files are skipped, never fatal.

Both walks use an explicit work stack rather than recursion, so very deep
trees cannot exhaust the call stack.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

from envii.scanner.fingerprint import (
    get_git_remote_url,
    get_project_name,
    resolve_fingerprint,
)
from envii.scanner.models import Project, ScanResult, SecretFile

logger = logging.getLogger(__name__)

# Presence of any of these marks a project root
PROJECT_MARKERS = (
    ".git",
    "package.json",
    "pyproject.toml",
    "go.mod",
    "Cargo.toml",
    "composer.json",
)

# Directories never entered during scanning
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "vendor",
        "dist",
        "build",
        ".next",
        ".nuxt",
        "__pycache__",
        ".venv",
        "venv",
        "target",
        ".cargo",
    }
)

# ".env" or ".env.<suffix>"
ENV_FILE_RE = re.compile(r"^\.env(\..+)?$")


def is_env_file(name: str) -> bool:
    """Check whether a filename is an env file."""
    return ENV_FILE_RE.fullmatch(name) is not None


def is_project_root(path: Path | str) -> bool:
    """Check whether a directory contains a project marker."""
    directory = Path(path)
    return any((directory / marker).exists() for marker in PROJECT_MARKERS)


def should_skip_dir(name: str) -> bool:
    """Check whether a directory name is deny-listed or hidden."""
    return name in SKIP_DIRS or name.startswith(".")


def _child_dirs(path: Path) -> list[os.DirEntry[str]]:
    """
    List traversable child directories, sorted by name.

    Symlinked directories are not followed. Returns an empty list when the
    directory cannot be read.
    """
    try:
        with os.scandir(path) as entries:
            children = [
                entry
                for entry in entries
                if entry.is_dir(follow_symlinks=False) and not should_skip_dir(entry.name)
            ]
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {path}: {e}")
        return []
    return sorted(children, key=lambda entry: entry.name)


def iter_project_roots(root: Path | str) -> Iterator[Path]:
    """
    Lazily yield project roots under a directory.

    Args:
        root: Directory to start from. It may itself be a project.

    Yields:
        Project root paths in depth-first pre-order.
    """
    stack: list[Path] = [Path(root)]

    while stack:
        current = stack.pop()

        if is_project_root(current):
            yield current
            continue

        # Reversed so the alphabetically first child is popped first
        for entry in reversed(_child_dirs(current)):
            stack.append(Path(entry.path))


def _read_secret_file(path: Path, relative: str) -> SecretFile | None:
    """
    Read one env file, returning None if it cannot be read as UTF-8.

    Bytes are decoded as is; line endings are not translated.
    """
    try:
        content = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Skipping unreadable env file {path}: {e}")
        return None
    return SecretFile.from_content(relative, content)


def find_secret_files(project_root: Path | str) -> list[SecretFile]:
    """
    Collect every env file under a project root.

    Args:
        project_root: Project directory.

    Returns:
        Secret files with "/"-separated paths relative to the root.
    """
    root = Path(project_root)
    found: list[SecretFile] = []
    stack: list[tuple[Path, str]] = [(root, "")]

    while stack:
        directory, prefix = stack.pop()

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        subdirs: list[tuple[Path, str]] = []
        for entry in entries:
            relative = f"{prefix}/{entry.name}" if prefix else entry.name
            try:
                if entry.is_file() and is_env_file(entry.name):
                    secret = _read_secret_file(Path(entry.path), relative)
                    if secret is not None:
                        found.append(secret)
                elif entry.is_dir(follow_symlinks=False) and not should_skip_dir(entry.name):
                    subdirs.append((Path(entry.path), relative))
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {entry.path}: {e}")

        stack.extend(reversed(subdirs))

    return found


def build_project(project_root: Path | str) -> Project:
    """Create a Project for a detected root, resolving identity and env files."""
    root = Path(project_root).resolve()
    return Project(
        name=get_project_name(root),
        path=str(root),
        fingerprint=resolve_fingerprint(root),
        git=get_git_remote_url(root),
        envs=find_secret_files(root),
    )


def scan(root: Path | str) -> list[Project]:
    """
    Scan a directory tree for projects and their env files.

    Args:
        root: Directory to scan.

    Returns:
        Projects in traversal order.
    """
    projects = []
    for project_root in iter_project_roots(root):
        project = build_project(project_root)
        logger.debug(
            f"Found project {project.name} at {project.path} "
            f"({project.fingerprint.source.value}, {len(project.envs)} env files)"
        )
        projects.append(project)
    return projects


def scan_directory(root: Path | str) -> ScanResult:
    """Scan a directory tree and return projects with env file totals."""
    result = ScanResult(projects=scan(root))
    logger.info(
        f"Scanned {root}: {len(result.projects)} projects, "
        f"{result.total_env_files} env files"
    )
    return result
