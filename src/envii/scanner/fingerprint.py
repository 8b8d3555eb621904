"""
Project fingerprinting.

A fingerprint identifies the same logical project on different machines,
wherever it happens to be checked out. Sources are tried in priority
order and the first non-empty value wins:

    1. git:     remote URL of the repository (origin, else first remote)
    2. package: name declared in the first present manifest file
    3. folder:  basename of the project root

Only the raw value feeds the digest; the absolute path never does.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from envii.scanner.models import Fingerprint, FingerprintSource

logger = logging.getLogger(__name__)

_SECTION_RE = re.compile(r'^\s*\[\s*remote\s+"(?P<name>[^"]+)"\s*\]')
_ANY_SECTION_RE = re.compile(r"^\s*\[")
_URL_RE = re.compile(r"^\s*url\s*=\s*(?P<url>.+?)\s*$")
_GO_MODULE_RE = re.compile(r"^\s*module\s+(?P<module>\S+)")


# -----------------------------------------------------------------------------
# Git
# -----------------------------------------------------------------------------


def _git_dir(project_root: Path) -> Path | None:
    """
    Locate the git directory for a project.

    Handles both a regular `.git` directory and a `.git` file containing a
    `gitdir:` pointer (worktrees and submodules).
    """
    dot_git = project_root / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        try:
            first_line = dot_git.read_text(encoding="utf-8").splitlines()[0]
        except (OSError, UnicodeDecodeError, IndexError):
            return None
        if first_line.startswith("gitdir:"):
            target = Path(first_line[len("gitdir:"):].strip())
            if not target.is_absolute():
                target = project_root / target
            return target
    return None


def _git_config_path(git_dir: Path) -> Path:
    """Return the config file, following `commondir` for linked worktrees."""
    commondir = git_dir / "commondir"
    if commondir.is_file():
        try:
            common = Path(commondir.read_text(encoding="utf-8").strip())
        except (OSError, UnicodeDecodeError):
            return git_dir / "config"
        if not common.is_absolute():
            common = git_dir / common
        return common / "config"
    return git_dir / "config"


def parse_remote_urls(config_text: str) -> dict[str, str]:
    """
    Extract remote URLs from git config text.

    Returns:
        Mapping of remote name to its first url, in file order.
    """
    remotes: dict[str, str] = {}
    current: str | None = None

    for line in config_text.splitlines():
        section = _SECTION_RE.match(line)
        if section:
            current = section.group("name")
            continue
        if _ANY_SECTION_RE.match(line):
            current = None
            continue
        if current is None or current in remotes:
            continue
        url = _URL_RE.match(line)
        if url:
            remotes[current] = url.group("url").strip('"')

    return remotes


def normalize_remote_url(url: str) -> str:
    """Strip whitespace, trailing slashes and a trailing `.git` suffix."""
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.rstrip("/")


def get_git_remote_url(project_root: Path | str) -> str | None:
    """
    Get the normalized remote URL of a project, if it has one.

    Prefers the `origin` remote, otherwise the first remote declared.
    """
    git_dir = _git_dir(Path(project_root))
    if git_dir is None:
        return None

    config_path = _git_config_path(git_dir)
    try:
        config_text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read git config {config_path}: {e}")
        return None

    remotes = parse_remote_urls(config_text)
    if not remotes:
        return None

    url = remotes.get("origin") or next(iter(remotes.values()))
    return normalize_remote_url(url) or None


# -----------------------------------------------------------------------------
# Manifests
# -----------------------------------------------------------------------------


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _read_toml(path: Path) -> dict[str, Any]:
    return tomllib.loads(path.read_text(encoding="utf-8"))


def _package_json_name(path: Path) -> str | None:
    data = _read_json(path)
    return data.get("name") if isinstance(data, dict) else None


def _pyproject_name(path: Path) -> str | None:
    data = _read_toml(path)
    name = data.get("project", {}).get("name")
    if not name:
        name = data.get("tool", {}).get("poetry", {}).get("name")
    return name


def _cargo_name(path: Path) -> str | None:
    return _read_toml(path).get("package", {}).get("name")


def _go_module(path: Path) -> str | None:
    for line in path.read_text(encoding="utf-8").splitlines():
        match = _GO_MODULE_RE.match(line)
        if match:
            return match.group("module")
    return None


# Checked in this order; the first manifest present with a name wins
MANIFEST_READERS: list[tuple[str, Callable[[Path], str | None]]] = [
    ("package.json", _package_json_name),
    ("pyproject.toml", _pyproject_name),
    ("Cargo.toml", _cargo_name),
    ("composer.json", _package_json_name),
    ("go.mod", _go_module),
]


def get_manifest_name(project_root: Path | str) -> str | None:
    """
    Get the project name declared in a manifest file.

    Unreadable or malformed manifests are treated as absent.
    """
    root = Path(project_root)
    for filename, reader in MANIFEST_READERS:
        path = root / filename
        if not path.is_file():
            continue
        try:
            name = reader(path)
        except (OSError, UnicodeDecodeError, ValueError, AttributeError) as e:
            logger.debug(f"Ignoring unreadable manifest {path}: {e}")
            continue
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def get_project_name(project_root: Path | str) -> str:
    """Display name: manifest name if declared, else the folder name."""
    return get_manifest_name(project_root) or Path(project_root).name


# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------


def resolve_fingerprint(project_root: Path | str) -> Fingerprint:
    """
    Resolve the fingerprint of a project root.

    Args:
        project_root: Directory detected as a project.

    Returns:
        Fingerprint from the highest priority source that yields a value.
    """
    root = Path(project_root)

    remote = get_git_remote_url(root)
    if remote:
        return Fingerprint.create(FingerprintSource.GIT, remote)

    name = get_manifest_name(root)
    if name:
        return Fingerprint.create(FingerprintSource.PACKAGE, name)

    return Fingerprint.create(FingerprintSource.FOLDER, root.resolve().name)
