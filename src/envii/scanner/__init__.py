"""
Project discovery for Envii.

Finds project roots in a directory tree, resolves a cross-machine
fingerprint for each, and collects their env files.
"""

from envii.scanner.filesystem import (
    PROJECT_MARKERS,
    SKIP_DIRS,
    find_secret_files,
    is_env_file,
    is_project_root,
    iter_project_roots,
    scan,
    scan_directory,
)
from envii.scanner.fingerprint import (
    get_git_remote_url,
    get_manifest_name,
    get_project_name,
    resolve_fingerprint,
)
from envii.scanner.models import (
    Fingerprint,
    FingerprintSource,
    Project,
    ScanResult,
    SecretFile,
)

__all__ = [
    # Models
    "Project",
    "SecretFile",
    "Fingerprint",
    "FingerprintSource",
    "ScanResult",
    # Scanning
    "scan",
    "scan_directory",
    "iter_project_roots",
    "find_secret_files",
    "is_env_file",
    "is_project_root",
    "PROJECT_MARKERS",
    "SKIP_DIRS",
    # Fingerprinting
    "resolve_fingerprint",
    "get_git_remote_url",
    "get_manifest_name",
    "get_project_name",
]
