"""
Tests for the CLI commands.

Uses Python's unittest module.
Tests argument parsing, command handlers and output formatting.
"""

from __future__ import annotations

import argparse
import io
import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from envii import cli
from envii.api.client import BackupPage, BackupRecord
from envii.backup.document import ProjectSnapshot, SecretFileSnapshot
from envii.backup.manager import BackupResult, ListResult, RestoreResult
from envii.backup.restore import FileResult, FileStatus, MatchedProject, RestoreOutcome
from envii.cli import create_parser
from envii.config.settings import Settings, load_config, save_config
from envii.crypto.recovery import vault_identifier
from envii.errors import ErrorKind

VALID_PHRASE = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
OTHER_PHRASE = (
    "legal winner thank year wave sausage worth useful legal winner thank yellow"
)


class TestArgumentParser(unittest.TestCase):
    """Tests for CLI argument parsing."""

    def setUp(self) -> None:
        """Set up parser for tests."""
        self.parser = create_parser()

    def test_version_argument(self) -> None:
        """Test --version argument."""
        with self.assertRaises(SystemExit) as cm, patch("sys.stdout", new_callable=io.StringIO):
            self.parser.parse_args(["--version"])

        self.assertEqual(cm.exception.code, 0)

    def test_no_command_defaults(self) -> None:
        """Test parsing with no command."""
        args = self.parser.parse_args([])

        self.assertIsNone(args.command)
        self.assertEqual(args.verbose, 0)
        self.assertFalse(args.quiet)

    def test_verbose_flag(self) -> None:
        """Test -v verbose flag."""
        args = self.parser.parse_args(["-vv"])
        self.assertEqual(args.verbose, 2)

    def test_init_command_parses(self) -> None:
        args = self.parser.parse_args(["init", "--existing"])
        self.assertEqual(args.command, "init")
        self.assertTrue(args.existing)
        self.assertFalse(args.force)
        self.assertIs(args.func, cli.cmd_init)

    def test_backup_command_parses(self) -> None:
        args = self.parser.parse_args(["backup", "--dev", "--path", "/work"])
        self.assertEqual(args.command, "backup")
        self.assertTrue(args.dev)
        self.assertEqual(args.path, "/work")

    def test_restore_command_parses(self) -> None:
        args = self.parser.parse_args(["restore", "--force"])
        self.assertTrue(args.force)
        self.assertFalse(args.dev)
        self.assertIsNone(args.path)

    def test_list_command_defaults(self) -> None:
        args = self.parser.parse_args(["list"])
        self.assertEqual(args.limit, 10)
        self.assertEqual(args.offset, 0)

    def test_global_config_option(self) -> None:
        args = self.parser.parse_args(["--config", "/tmp/envii.yaml", "list"])
        self.assertEqual(args.config, "/tmp/envii.yaml")


class CliTestCase(unittest.TestCase):
    """Base class giving each test an isolated config file."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = Path(self.temp_dir.name) / "config.yaml"
        self.env = patch.dict(
            os.environ,
            {k: v for k, v in os.environ.items() if not k.startswith("ENVII_")},
            clear=True,
        )
        self.env.start()
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()
        self._out = patch("sys.stdout", self.stdout)
        self._err = patch("sys.stderr", self.stderr)
        self._out.start()
        self._err.start()
        cli.set_output_mode(quiet=False, verbose=0)
        self.root_level = logging.getLogger().level

    def tearDown(self) -> None:
        self._err.stop()
        logging.getLogger().setLevel(self.root_level)
        self._out.stop()
        self.env.stop()
        self.temp_dir.cleanup()

    def args(self, *argv: str) -> argparse.Namespace:
        return create_parser().parse_args(["--config", str(self.config_path), *argv])

    def initialize(self, phrase: str = VALID_PHRASE) -> None:
        save_config(
            Settings(vault_id=vault_identifier(phrase), device_id="laptop-test"),
            self.config_path,
        )


class TestInitCommand(CliTestCase):
    """Tests for envii init."""

    def test_new_phrase_saved_after_confirmation(self) -> None:
        with patch("envii.cli.generate_recovery_phrase", return_value=VALID_PHRASE), patch(
            "builtins.input", return_value="y"
        ):
            code = cli.cmd_init(self.args("init"))

        self.assertEqual(code, 0)
        settings = load_config(self.config_path)
        self.assertEqual(settings.vault_id, vault_identifier(VALID_PHRASE))
        self.assertTrue(settings.device_id)
        self.assertIn(VALID_PHRASE, self.stdout.getvalue())
        self.assertNotIn(VALID_PHRASE, self.config_path.read_text())

    def test_cancelled_without_confirmation(self) -> None:
        with patch("builtins.input", return_value="n"):
            code = cli.cmd_init(self.args("init"))

        self.assertEqual(code, 1)
        self.assertFalse(self.config_path.exists())

    def test_existing_phrase(self) -> None:
        with patch("envii.cli.read_recovery_phrase", return_value=OTHER_PHRASE.upper()):
            code = cli.cmd_init(self.args("init", "--existing"))

        self.assertEqual(code, 0)
        self.assertEqual(load_config(self.config_path).vault_id, vault_identifier(OTHER_PHRASE))

    def test_existing_phrase_invalid(self) -> None:
        with patch("envii.cli.read_recovery_phrase", return_value="one two three"):
            code = cli.cmd_init(self.args("init", "--existing"))

        self.assertEqual(code, 1)
        self.assertIn("12 words", self.stderr.getvalue())

    def test_already_initialized(self) -> None:
        self.initialize()
        with patch("envii.cli.read_recovery_phrase") as mock_read:
            code = cli.cmd_init(self.args("init", "--existing"))

        self.assertEqual(code, 0)
        mock_read.assert_not_called()
        self.assertIn("already initialized", self.stdout.getvalue())


class TestBackupCommand(CliTestCase):
    """Tests for envii backup."""

    def test_not_initialized(self) -> None:
        code = cli.cmd_backup(self.args("backup"))
        self.assertEqual(code, 1)
        self.assertIn("envii init", self.stderr.getvalue())

    def test_phrase_for_other_vault_rejected(self) -> None:
        self.initialize(VALID_PHRASE)
        with patch("envii.cli.read_recovery_phrase", return_value=OTHER_PHRASE), patch(
            "envii.cli.BackupManager"
        ) as mock_manager:
            code = cli.cmd_backup(self.args("backup"))

        self.assertEqual(code, 1)
        mock_manager.assert_not_called()
        self.assertIn("does not match", self.stderr.getvalue())

    def test_backup_success(self) -> None:
        self.initialize()
        manager = MagicMock()
        manager.create_backup.return_value = BackupResult(
            success=True,
            record=BackupRecord(id="b1", created_at="2024-01-15T10:30:00Z", size_bytes=99),
            project_count=2,
            file_count=3,
            original_size=1200,
            compressed_size=400,
        )

        with patch("envii.cli.read_recovery_phrase", return_value=VALID_PHRASE), patch(
            "envii.cli.BackupManager", return_value=manager
        ), patch("envii.cli.VaultClient") as mock_client:
            code = cli.cmd_backup(self.args("backup", "--dev", "--path", self.temp_dir.name))

        self.assertEqual(code, 0)
        mock_client.assert_called_once_with(
            "http://localhost:4400", vault_identifier(VALID_PHRASE), timeout=30.0
        )
        manager.create_backup.assert_called_once_with(Path(self.temp_dir.name), VALID_PHRASE)
        out = self.stdout.getvalue()
        self.assertIn("Backup created successfully!", out)
        self.assertIn("Env files: 3", out)

    def test_backup_network_failure(self) -> None:
        self.initialize()
        manager = MagicMock()
        manager.create_backup.return_value = BackupResult(
            success=False, error="connection refused", error_kind=ErrorKind.NETWORK
        )

        with patch("envii.cli.read_recovery_phrase", return_value=VALID_PHRASE), patch(
            "envii.cli.BackupManager", return_value=manager
        ), patch("envii.cli.VaultClient"):
            code = cli.cmd_backup(self.args("backup"))

        self.assertEqual(code, 1)
        self.assertIn("Could not reach", self.stderr.getvalue())


class TestRestoreCommand(CliTestCase):
    """Tests for envii restore."""

    def _make_outcome(self, statuses) -> RestoreOutcome:
        env = SecretFileSnapshot(".env", "c", "A=1")
        project = ProjectSnapshot(
            id="1", name="api", git=None, fingerprint="f", path="/old/api", envs=(env,)
        )
        gone = ProjectSnapshot(
            id="2", name="gone", git=None, fingerprint="g", path="/old/gone", envs=(env, env)
        )
        return RestoreOutcome(
            matched=[MatchedProject(project, "/new/api")],
            unmatched=[gone],
            files=[FileResult("api", f".env.{i}", status) for i, status in enumerate(statuses)],
        )

    def _run(self, result: RestoreResult, *argv: str) -> int:
        self.initialize()
        manager = MagicMock()
        manager.restore_backup.return_value = result
        with patch("envii.cli.read_recovery_phrase", return_value=VALID_PHRASE), patch(
            "envii.cli.BackupManager", return_value=manager
        ), patch("envii.cli.VaultClient"):
            code = cli.cmd_restore(self.args("restore", *argv))
        self.manager = manager
        return code

    def test_restore_summary(self) -> None:
        outcome = self._make_outcome([FileStatus.RESTORED, FileStatus.SKIPPED])
        code = self._run(
            RestoreResult(success=True, outcome=outcome, backup_created_at="2024-01-15"),
        )

        self.assertEqual(code, 0)
        out = self.stdout.getvalue()
        self.assertIn("api -> /new/api", out)
        self.assertIn("Restored 1 of 2 files (1 skipped)", out)
        self.assertIn("gone (2 env files)", out)
        self.assertIn("--force", out)

    def test_restore_passes_force(self) -> None:
        outcome = self._make_outcome([FileStatus.RESTORED])
        self._run(RestoreResult(success=True, outcome=outcome), "--force")

        _, kwargs = self.manager.restore_backup.call_args
        self.assertTrue(kwargs["force"])

    def test_restore_with_failures_exits_nonzero(self) -> None:
        outcome = self._make_outcome([FileStatus.RESTORED, FileStatus.FAILED])
        code = self._run(RestoreResult(success=True, outcome=outcome))

        self.assertEqual(code, 1)
        self.assertIn("(1 failed)", self.stdout.getvalue())

    def test_restore_wrong_phrase(self) -> None:
        code = self._run(
            RestoreResult(
                success=False,
                error="Could not decrypt the backup. Wrong recovery phrase?",
                error_kind=ErrorKind.AUTHENTICATION,
            )
        )

        self.assertEqual(code, 1)
        self.assertIn("Wrong recovery phrase", self.stderr.getvalue())

    def test_restore_nothing_matched(self) -> None:
        outcome = RestoreOutcome(matched=[], unmatched=[])
        code = self._run(RestoreResult(success=True, outcome=outcome))

        self.assertEqual(code, 0)
        self.assertIn("No matching projects", self.stdout.getvalue())


class TestListCommand(CliTestCase):
    """Tests for envii list."""

    def _run(self, result: ListResult, *argv: str) -> int:
        self.initialize()
        manager = MagicMock()
        manager.list_backups.return_value = result
        with patch("envii.cli.BackupManager", return_value=manager), patch("envii.cli.VaultClient"):
            code = cli.cmd_list(self.args("list", *argv))
        self.manager = manager
        return code

    def test_list_backups(self) -> None:
        page = BackupPage(
            items=[BackupRecord(id="b2", created_at="2024-01-16T00:00:00Z", size_bytes=2048, device_id="desk")],
            total=5,
        )
        code = self._run(ListResult(success=True, page=page), "--limit", "1", "--offset", "1")

        self.assertEqual(code, 0)
        self.manager.list_backups.assert_called_once_with(limit=1, offset=1)
        out = self.stdout.getvalue()
        self.assertIn("b2", out)
        self.assertIn("2,048", out)
        self.assertIn("Showing 1 of 5 backups", out)

    def test_list_empty(self) -> None:
        code = self._run(ListResult(success=True, page=BackupPage()))
        self.assertEqual(code, 0)
        self.assertIn("No backups found.", self.stdout.getvalue())

    def test_list_failure(self) -> None:
        code = self._run(ListResult(success=False, error="boom", error_kind=ErrorKind.NETWORK))
        self.assertEqual(code, 1)


class TestConfiguredLogLevel(CliTestCase):
    """Tests for applying the configured log level."""

    def _list_with_level(self, level: str, *flags: str) -> None:
        save_config(
            Settings(vault_id="v" * 64, device_id="d", log_level=level),
            self.config_path,
        )
        manager = MagicMock()
        manager.list_backups.return_value = ListResult(success=True, page=BackupPage())
        args = create_parser().parse_args(["--config", str(self.config_path), *flags, "list"])
        with patch("envii.cli.BackupManager", return_value=manager), patch("envii.cli.VaultClient"):
            cli.cmd_list(args)

    def test_config_level_applied_without_flags(self) -> None:
        self._list_with_level("DEBUG")
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_environment_level_applied(self) -> None:
        with patch.dict(os.environ, {"ENVII_LOG_LEVEL": "error"}):
            self._list_with_level("DEBUG")
        self.assertEqual(logging.getLogger().level, logging.ERROR)

    def test_verbose_flag_wins(self) -> None:
        logging.getLogger().setLevel(logging.INFO)
        self._list_with_level("ERROR", "-v")
        self.assertEqual(logging.getLogger().level, logging.INFO)


class TestMain(CliTestCase):
    """Tests for the main entry point."""

    def test_no_command_prints_help(self) -> None:
        with patch("sys.argv", ["envii"]), patch("envii.cli.setup_logging"):
            with self.assertRaises(SystemExit) as cm:
                cli.main()
        self.assertEqual(cm.exception.code, 0)
        self.assertIn("usage: envii", self.stdout.getvalue())

    def test_configuration_error_exit_code(self) -> None:
        self.config_path.write_text("envii:\n  log_level: NOPE\n")
        with patch("sys.argv", ["envii", "--config", str(self.config_path), "list"]), patch(
            "envii.cli.setup_logging"
        ):
            with self.assertRaises(SystemExit) as cm:
                cli.main()
        self.assertEqual(cm.exception.code, 2)
        self.assertIn("Configuration error", self.stderr.getvalue())

    def test_keyboard_interrupt(self) -> None:
        self.initialize()
        with patch("sys.argv", ["envii", "--config", str(self.config_path), "backup"]), patch(
            "envii.cli.setup_logging"
        ), patch("envii.cli.read_recovery_phrase", side_effect=KeyboardInterrupt):
            with self.assertRaises(SystemExit) as cm:
                cli.main()
        self.assertEqual(cm.exception.code, 130)


if __name__ == "__main__":
    unittest.main()
