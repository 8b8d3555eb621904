"""
Envii - Backup and restore .env files across machines

Envii finds every project under a directory, collects its .env files and
stores them as one encrypted snapshot. On another machine the snapshot is
decrypted and each file is written back into the matching local project.

Key Features:
    - No accounts: a 12-word recovery phrase is the only secret
    - Projects are matched by git remote, manifest name or folder name,
      never by absolute path
    - AES-256-GCM encryption with PBKDF2 key derivation, done locally
    - Existing files are never overwritten unless asked to

Design Principles:
    - Full snapshots: every backup is self-contained
    - Non-destructive: restore skips files that already exist
    - Determinism: the same project has the same identity on every machine
"""

__version__ = "0.1.0"

from envii.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
