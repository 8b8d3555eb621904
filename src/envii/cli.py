"""
Command-line interface for Envii.

Provides commands to initialize a vault, back up every .env file under a
directory tree, restore them into matching projects on another machine,
and list stored backups.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import NoReturn

from envii import __version__
from envii.api.client import VaultClient
from envii.backup.manager import BackupManager
from envii.backup.restore import FileStatus, RestoreOutcome
from envii.config.settings import (
    Settings,
    default_device_id,
    get_config_path,
    load_config,
    save_config,
)
from envii.crypto.recovery import (
    generate_recovery_phrase,
    require_valid_phrase,
    vault_identifier,
)
from envii.errors import ConfigurationError, ErrorKind, InputError

# Set up logging
logger = logging.getLogger(__name__)

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
        verbose: Verbosity level (0=normal, 1+=verbose).
    """
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode.
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for Envii CLI."""
    parser = argparse.ArgumentParser(
        prog="envii",
        description=(
            "Backup and restore .env files across machines "
            "with recovery-phrase authentication"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"envii {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.envii/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize Envii for the current user",
        description="Create a new recovery phrase, or link an existing one.",
    )
    init_parser.add_argument(
        "--existing",
        action="store_true",
        help="Use an existing recovery phrase (e.g. on a second machine)",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Reinitialize even if a vault is already configured",
    )
    init_parser.set_defaults(func=cmd_init)

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Backup all .env files in the current directory tree",
    )
    backup_parser.add_argument(
        "--path",
        metavar="DIR",
        help="Directory to scan (default: current directory)",
    )
    backup_parser.add_argument(
        "--dev",
        action="store_true",
        help="Use the local development API endpoint",
    )
    backup_parser.set_defaults(func=cmd_backup)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore all .env files to their projects",
    )
    restore_parser.add_argument(
        "--path",
        metavar="DIR",
        help="Directory to scan for projects (default: current directory)",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing .env files",
    )
    restore_parser.add_argument(
        "--dev",
        action="store_true",
        help="Use the local development API endpoint",
    )
    restore_parser.set_defaults(func=cmd_restore)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List stored backups",
    )
    list_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of backups to show (default: 10, max: 100)",
    )
    list_parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Number of backups to skip",
    )
    list_parser.add_argument(
        "--dev",
        action="store_true",
        help="Use the local development API endpoint",
    )
    list_parser.set_defaults(func=cmd_list)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.ERROR
    elif verbose == 0:
        level = logging.WARNING
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def apply_config_log_level(settings: Settings, args: argparse.Namespace) -> None:
    """Use the configured log level unless -v or -q was given."""
    if getattr(args, "verbose", 0) or getattr(args, "quiet", False):
        return
    logging.getLogger().setLevel(settings.log_level)


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if getattr(args, "config", None) else None


def _load_initialized_settings(args: argparse.Namespace) -> Settings | None:
    """Load settings, printing guidance if Envii has not been initialized."""
    settings = load_config(_config_path(args))
    apply_config_log_level(settings, args)
    if not settings.is_initialized():
        output_error("Envii is not initialized. Run `envii init` first.")
        return None
    return settings


def read_recovery_phrase(prompt: str = "Recovery phrase: ") -> str:
    """Read a recovery phrase without echoing it."""
    return getpass.getpass(prompt)


def _phrase_for_vault(settings: Settings) -> str:
    """
    Prompt for the phrase and check that it belongs to the configured vault.

    Raises:
        InputError: If the phrase is invalid or belongs to another vault.
    """
    output("Enter your recovery phrase:")
    phrase = require_valid_phrase(read_recovery_phrase())
    if vault_identifier(phrase) != settings.vault_id:
        raise InputError(
            "This recovery phrase does not match the configured vault. "
            "Run `envii init --existing --force` to switch vaults."
        )
    return phrase


def _make_client(settings: Settings, dev: bool) -> VaultClient:
    return VaultClient(
        settings.resolve_api_url(dev),
        settings.vault_id,
        timeout=settings.request_timeout,
    )


def _report_failure(error: str | None, kind: ErrorKind | None) -> int:
    """Print a failed result with guidance matching its error kind."""
    output_error(f"Error: {error}")
    if kind == ErrorKind.NETWORK:
        output_error("Could not reach the Envii API. Check your connection and the server URL.")
    elif kind == ErrorKind.AUTHENTICATION:
        output_error("Make sure you entered the recovery phrase for this vault.")
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize Envii configuration."""
    config_path = _config_path(args) or get_config_path()
    settings = load_config(config_path)
    apply_config_log_level(settings, args)

    if settings.is_initialized() and not args.force:
        output(f"Envii is already initialized ({config_path}).")
        output("Use `envii init --force` to reinitialize.")
        return 0

    output("Envii Initialization")
    output("=" * 50)
    output()

    if args.existing:
        output("Enter your existing 12-word recovery phrase:")
        try:
            phrase = require_valid_phrase(read_recovery_phrase())
        except InputError as e:
            output_error(f"Error: {e}")
            return 1
    else:
        phrase = generate_recovery_phrase()
        output("Your recovery phrase:")
        output()
        output(f"    {phrase}", force=True)
        output()
        output("Write it down and keep it safe. It is the ONLY way to decrypt")
        output("your backups. Envii cannot recover it for you.")
        output()
        response = input("Have you saved your recovery phrase? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Initialization cancelled.")
            return 1

    settings.vault_id = vault_identifier(phrase)
    if not settings.device_id:
        settings.device_id = default_device_id()

    save_config(settings, config_path)

    output()
    output("Initialization complete.")
    output(f"  Config: {config_path}")
    output(f"  Device: {settings.device_id}")
    output()
    output("Next steps:")
    output("  1. cd into the directory that holds your projects")
    output("  2. Run `envii backup`")
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Back up all env files under a directory."""
    settings = _load_initialized_settings(args)
    if settings is None:
        return 1

    root = Path(args.path) if args.path else Path.cwd()

    output("Envii Backup")
    output("=" * 50)
    output()

    try:
        phrase = _phrase_for_vault(settings)
    except InputError as e:
        output_error(f"Error: {e}")
        return 1

    output(f"Scanning {root}...")
    manager = BackupManager(_make_client(settings, args.dev), settings.device_id)
    result = manager.create_backup(root, phrase)

    if not result.success:
        output()
        return _report_failure(result.error, result.error_kind)

    output()
    output("Backup created successfully!")
    output()
    if result.record:
        output(f"  ID: {result.record.id}")
    output(f"  Projects: {result.project_count}")
    output(f"  Env files: {result.file_count}")
    output(f"  Size: {result.original_size:,} bytes ({result.compressed_size:,} compressed)")
    if args.dev:
        output()
        output("(Using local development API)")
    return 0


def _print_unmatched(outcome: RestoreOutcome) -> None:
    if not outcome.unmatched:
        return
    output()
    output("Projects not found locally:")
    for project in outcome.unmatched:
        count = len(project.envs)
        noun = "env file" if count == 1 else "env files"
        output(f"  - {project.name} ({count} {noun})")


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore env files from the latest backup."""
    settings = _load_initialized_settings(args)
    if settings is None:
        return 1

    root = Path(args.path) if args.path else Path.cwd()

    output("Envii Restore")
    output("=" * 50)
    output()

    try:
        phrase = _phrase_for_vault(settings)
    except InputError as e:
        output_error(f"Error: {e}")
        return 1

    output("Downloading latest backup...")
    manager = BackupManager(_make_client(settings, args.dev), settings.device_id)
    result = manager.restore_backup(root, phrase, force=args.force)

    if not result.success or result.outcome is None:
        output()
        return _report_failure(result.error, result.error_kind)

    outcome = result.outcome
    output(f"Backup from {result.backup_created_at}")
    output()

    if not outcome.matched:
        output("No matching projects found locally.")
        output("Make sure you have cloned/created the projects before restoring.")
        _print_unmatched(outcome)
        return 0

    for pair in outcome.matched:
        output(f"  {pair.backup_project.name} -> {pair.local_path}")
    output()

    for item in outcome.files:
        marker = {
            FileStatus.RESTORED: "+",
            FileStatus.SKIPPED: "=",
            FileStatus.FAILED: "!",
        }[item.status]
        output(f"  {marker} {item.display_path} ({item.status.value})")

    output()
    summary = f"Restored {outcome.restored} of {outcome.total} files"
    if outcome.skipped:
        summary += f" ({outcome.skipped} skipped)"
    if outcome.failed:
        summary += f" ({outcome.failed} failed)"
    output(summary, force=True)

    _print_unmatched(outcome)

    if outcome.skipped:
        output()
        output("Use --force to overwrite existing files.")

    return 1 if outcome.failed else 0


def cmd_list(args: argparse.Namespace) -> int:
    """List stored backups."""
    settings = _load_initialized_settings(args)
    if settings is None:
        return 1

    manager = BackupManager(_make_client(settings, args.dev), settings.device_id)
    result = manager.list_backups(limit=args.limit, offset=args.offset)

    if not result.success or result.page is None:
        return _report_failure(result.error, result.error_kind)

    page = result.page
    if not page.items:
        output("No backups found.")
        return 0

    output(f"{'ID':<24} {'Created':<28} {'Size':>10}  Device")
    output("-" * 80)
    for record in page.items:
        output(
            f"{record.id:<24} {record.created_at:<28} "
            f"{record.size_bytes:>10,}  {record.device_id or '-'}",
            force=True,
        )
    output()
    output(f"Showing {len(page.items)} of {page.total} backups")
    return 0


def main() -> NoReturn:
    """Main entry point for Envii CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
