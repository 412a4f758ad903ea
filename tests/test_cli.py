"""
Tests for the CLI commands.

Uses Python's unittest module.
Tests argument parsing, the backup, restore, inspect and info commands,
and exit codes.
"""

from __future__ import annotations

import argparse
import io
import json
import os
import shutil
import tempfile
import unittest
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

from wbap.cli import (
    cmd_backup,
    cmd_info,
    cmd_inspect,
    cmd_restore,
    create_parser,
    main,
    prompt_new_passphrase,
    set_output_mode,
)
from wbap.records import CheckInRecord, PlanRecord, ProfileRecord, Zone
from wbap.restore import INLINE_PASSPHRASE_ERROR, RestoreOrchestrator, RestoreState
from wbap.storage import SQLiteRecordStore

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TestArgumentParser(unittest.TestCase):
    """Tests for CLI argument parsing."""

    def setUp(self) -> None:
        """Set up parser for tests."""
        self.parser = create_parser()

    def test_version_argument(self) -> None:
        """Test --version argument."""
        with patch("sys.stdout", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                self.parser.parse_args(["--version"])

        self.assertEqual(cm.exception.code, 0)

    def test_no_command_defaults(self) -> None:
        """Test parsing with no command."""
        args = self.parser.parse_args([])

        self.assertIsNone(args.command)
        self.assertEqual(args.verbose, 0)
        self.assertFalse(args.quiet)
        self.assertIsNone(args.config)

    def test_verbose_flag(self) -> None:
        """Test -v verbose flag."""
        self.assertEqual(self.parser.parse_args(["-v"]).verbose, 1)
        self.assertEqual(self.parser.parse_args(["-vv"]).verbose, 2)

    def test_backup_command_parses(self) -> None:
        """Test backup command options."""
        args = self.parser.parse_args(["backup", "-o", "/tmp/out", "--nickname", "Alex"])

        self.assertEqual(args.command, "backup")
        self.assertEqual(args.output, "/tmp/out")
        self.assertEqual(args.nickname, "Alex")
        self.assertIs(args.func, cmd_backup)

    def test_backup_defaults(self) -> None:
        """Test backup command defaults."""
        args = self.parser.parse_args(["backup"])

        self.assertIsNone(args.output)
        self.assertIsNone(args.nickname)

    def test_restore_command_parses(self) -> None:
        """Test restore command with a file and --force."""
        args = self.parser.parse_args(["restore", "plan.wbap", "--force"])

        self.assertEqual(args.backup_file, "plan.wbap")
        self.assertTrue(args.force)
        self.assertIs(args.func, cmd_restore)

    def test_restore_requires_file(self) -> None:
        """Test that restore needs a file argument."""
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                self.parser.parse_args(["restore"])

        self.assertEqual(cm.exception.code, 2)

    def test_inspect_command_parses(self) -> None:
        """Test inspect command."""
        args = self.parser.parse_args(["inspect", "plan.wbap"])

        self.assertEqual(args.backup_file, "plan.wbap")
        self.assertIs(args.func, cmd_inspect)

    def test_info_json_flag(self) -> None:
        """Test info --json."""
        args = self.parser.parse_args(["info", "--json"])

        self.assertTrue(args.json)
        self.assertIs(args.func, cmd_info)


class TestPromptNewPassphrase(unittest.TestCase):
    """Tests for prompt_new_passphrase()."""

    def test_matching_entries(self) -> None:
        """Test that a confirmed passphrase is returned."""
        with patch("wbap.cli.getpass.getpass", side_effect=["pw", "pw"]):
            self.assertEqual(prompt_new_passphrase(), "pw")

    def test_reprompts_on_empty_and_mismatch(self) -> None:
        """Test that empty and mismatched entries are asked again."""
        entries = ["", "one", "two", "pw", "pw"]
        with patch("wbap.cli.getpass.getpass", side_effect=entries) as mock_getpass:
            with patch("sys.stderr", new_callable=io.StringIO) as err:
                self.assertEqual(prompt_new_passphrase(), "pw")

        self.assertEqual(mock_getpass.call_count, 5)
        self.assertIn("cannot be empty", err.getvalue())
        self.assertIn("do not match", err.getvalue())


class CommandTestCase(unittest.TestCase):
    """Base class running commands against a temporary config and store."""

    def setUp(self) -> None:
        """Create a config file pointing into a temp directory."""
        self.temp_dir = tempfile.mkdtemp()
        self.data_dir = Path(self.temp_dir) / "data"
        self.backup_dir = Path(self.temp_dir) / "backups"
        self.config_path = Path(self.temp_dir) / "config.yaml"
        self.config_path.write_text(
            f"wbap:\n  data_dir: {self.data_dir}\n"
            f"backup:\n  output_dir: {self.backup_dir}\n"
        )
        self.env = patch.dict(os.environ, {}, clear=True)
        self.env.start()
        set_output_mode(quiet=False, verbose=0)

    def tearDown(self) -> None:
        """Clean up temp directory."""
        self.env.stop()
        set_output_mode(quiet=False, verbose=0)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def seed(self) -> SQLiteRecordStore:
        """Store a plan, a profile and one check-in."""
        store = SQLiteRecordStore(self.data_dir)
        store.save_plan(
            PlanRecord(
                action_plan_id="p1",
                plan_payload={"patientNickname": "Alex"},
                installed_at=T0,
                last_accessed_at=T0,
            )
        )
        store.save_profile(
            ProfileRecord(action_plan_id="p1", display_name="Alex", onboarding_complete=True)
        )
        store.add_check_in(CheckInRecord(action_plan_id="p1", zone=Zone.GREEN, created_at=T0))
        return store

    def args(self, *argv: str) -> argparse.Namespace:
        """Parse a command line with the test config."""
        return create_parser().parse_args(["--config", str(self.config_path), *argv])

    def run_command(self, args: argparse.Namespace, passphrases=(), answers=()):
        """Run a command with scripted prompts; return (code, stdout, stderr)."""
        with patch("wbap.cli.getpass.getpass", side_effect=list(passphrases)), \
                patch("builtins.input", side_effect=list(answers)), \
                patch("sys.stdout", new_callable=io.StringIO) as out, \
                patch("sys.stderr", new_callable=io.StringIO) as err:
            code = args.func(args)
        return code, out.getvalue(), err.getvalue()

    def make_backup(self, passphrase: str = "correct-horse") -> Path:
        """Create a backup file through the backup command."""
        self.seed()
        code, _, _ = self.run_command(self.args("backup"), passphrases=[passphrase, passphrase])
        self.assertEqual(code, 0)
        return next(self.backup_dir.glob("*.wbap"))


class TestBackupCommand(CommandTestCase):
    """Tests for cmd_backup."""

    def test_backup_success(self) -> None:
        """Test that a backup file is written to the configured directory."""
        self.seed()

        code, out, _ = self.run_command(
            self.args("backup"), passphrases=["correct-horse", "correct-horse"]
        )

        self.assertEqual(code, 0)
        self.assertIn("Backup created successfully", out)
        files = list(self.backup_dir.glob("alex-backup-*.wbap"))
        self.assertEqual(len(files), 1)

    def test_backup_output_and_nickname(self) -> None:
        """Test --output and --nickname."""
        self.seed()
        target = Path(self.temp_dir) / "elsewhere"

        code, _, _ = self.run_command(
            self.args("backup", "-o", str(target), "--nickname", "Sam"),
            passphrases=["pw", "pw"],
        )

        self.assertEqual(code, 0)
        self.assertEqual(len(list(target.glob("sam-backup-*.wbap"))), 1)

    def test_backup_without_plan(self) -> None:
        """Test that backup fails when nothing is installed."""
        code, _, err = self.run_command(self.args("backup"), passphrases=["pw", "pw"])

        self.assertEqual(code, 1)
        self.assertIn("No plan to back up", err)


class TestRestoreCommand(CommandTestCase):
    """Tests for cmd_restore."""

    def test_restore_success(self) -> None:
        """Test restoring with the right passphrase and --force."""
        backup = self.make_backup()

        code, out, _ = self.run_command(
            self.args("restore", str(backup), "--force"), passphrases=["correct-horse"]
        )

        self.assertEqual(code, 0)
        self.assertIn("Restore completed successfully", out)

    def test_restore_forgives_one_mistake(self) -> None:
        """Test that one wrong passphrase re-prompts."""
        backup = self.make_backup()

        code, _, err = self.run_command(
            self.args("restore", str(backup), "--force"),
            passphrases=["wrong", "correct-horse"],
        )

        self.assertEqual(code, 0)
        self.assertIn(INLINE_PASSPHRASE_ERROR, err)

    def test_restore_second_mistake_fails(self) -> None:
        """Test that two wrong passphrases end the restore."""
        backup = self.make_backup()

        code, _, err = self.run_command(
            self.args("restore", str(backup), "--force"),
            passphrases=["wrong", "also-wrong"],
        )

        self.assertEqual(code, 1)
        self.assertIn("Restore failed", err)

    def test_restore_confirmation_declined(self) -> None:
        """Test that declining the confirmation leaves data alone."""
        backup = self.make_backup()
        store = SQLiteRecordStore(self.data_dir)
        store.add_check_in(CheckInRecord(action_plan_id="p1", zone=Zone.RED, created_at=T0))

        code, out, _ = self.run_command(
            self.args("restore", str(backup)), passphrases=["correct-horse"], answers=["n"]
        )

        self.assertEqual(code, 0)
        self.assertIn("Restore cancelled", out)
        self.assertEqual(len(store.get_check_ins("p1")), 2)

    def test_restore_confirmation_accepted(self) -> None:
        """Test that confirming replaces the check-in history."""
        backup = self.make_backup()
        store = SQLiteRecordStore(self.data_dir)
        store.add_check_in(CheckInRecord(action_plan_id="p1", zone=Zone.RED, created_at=T0))

        code, _, _ = self.run_command(
            self.args("restore", str(backup)), passphrases=["correct-horse"], answers=["y"]
        )

        self.assertEqual(code, 0)
        self.assertEqual([c.zone for c in store.get_check_ins("p1")], [Zone.GREEN])

    def test_restore_success_without_result(self) -> None:
        """Test that a successful attempt with no result exits 1 without writing."""
        backup = self.make_backup()
        store = SQLiteRecordStore(self.data_dir)
        store.add_check_in(CheckInRecord(action_plan_id="p1", zone=Zone.RED, created_at=T0))

        with patch.object(RestoreOrchestrator, "submit", return_value=RestoreState.SUCCESS):
            code, _, err = self.run_command(
                self.args("restore", str(backup), "--force"), passphrases=["correct-horse"]
            )

        self.assertEqual(code, 1)
        self.assertIn("Restore failed", err)
        self.assertEqual(len(store.get_check_ins("p1")), 2)

    def test_restore_missing_file(self) -> None:
        """Test restore with a file that does not exist."""
        code, _, err = self.run_command(self.args("restore", "/nonexistent/plan.wbap"))

        self.assertEqual(code, 1)
        self.assertIn("not found", err)

    def test_restore_wrong_extension(self) -> None:
        """Test that other file types are refused before prompting."""
        path = Path(self.temp_dir) / "notes.txt"
        path.write_text("hello")

        code, _, err = self.run_command(self.args("restore", str(path)))

        self.assertEqual(code, 1)
        self.assertIn(".wbap", err)

    def test_restore_not_a_backup(self) -> None:
        """Test that a non-backup .wbap file fails on the first attempt."""
        path = Path(self.temp_dir) / "fake.wbap"
        path.write_text("not json at all")

        code, _, err = self.run_command(
            self.args("restore", str(path), "--force"), passphrases=["anything"]
        )

        self.assertEqual(code, 1)
        self.assertIn("isn't a plan backup", err)


class TestInspectCommand(CommandTestCase):
    """Tests for cmd_inspect."""

    def test_inspect_backup(self) -> None:
        """Test inspecting a valid backup without a passphrase."""
        backup = self.make_backup()

        code, out, _ = self.run_command(self.args("inspect", str(backup)))

        self.assertEqual(code, 0)
        self.assertIn("Format version: 1", out)

    def test_inspect_invalid(self) -> None:
        """Test inspecting a file that is not an envelope."""
        path = Path(self.temp_dir) / "broken.wbap"
        path.write_text(json.dumps({"version": 1}))

        code, _, err = self.run_command(self.args("inspect", str(path)))

        self.assertEqual(code, 1)
        self.assertIn("Invalid backup", err)


class TestInfoCommand(CommandTestCase):
    """Tests for cmd_info."""

    def test_info_json(self) -> None:
        """Test info --json output."""
        self.seed()

        code, out, _ = self.run_command(self.args("info", "--json"))

        self.assertEqual(code, 0)
        info = json.loads(out)
        self.assertEqual(info["data_dir"], str(self.data_dir))
        self.assertEqual(info["storage"]["installed_plan"], "p1")
        self.assertEqual(info["storage"]["total_check_ins"], 1)

    def test_info_text(self) -> None:
        """Test info text output."""
        code, out, _ = self.run_command(self.args("info"))

        self.assertEqual(code, 0)
        self.assertIn("wbap System Information", out)


class TestMain(CommandTestCase):
    """Tests for main() exit codes."""

    def run_main(self, *argv: str) -> int:
        with patch("sys.argv", ["wbap", *argv]), \
                patch("wbap.cli.setup_logging"), \
                patch("sys.stdout", new_callable=io.StringIO), \
                patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                main()
        return cm.exception.code

    def test_no_command(self) -> None:
        """Test that no command prints help and exits 0."""
        self.assertEqual(self.run_main(), 0)

    def test_configuration_error_exit_code(self) -> None:
        """Test that an invalid config exits with 2."""
        self.config_path.write_text("backup:\n  extension: .zip\n")

        self.assertEqual(self.run_main("--config", str(self.config_path), "backup"), 2)

    def test_keyboard_interrupt_exit_code(self) -> None:
        """Test that Ctrl-C exits with 130."""
        with patch("wbap.cli.cmd_info", side_effect=KeyboardInterrupt):
            # The parser binds func at creation, so patch before main() builds it
            code = self.run_main("--config", str(self.config_path), "info")

        self.assertEqual(code, 130)

    def test_command_exit_code(self) -> None:
        """Test that a command's return value becomes the exit code."""
        code = self.run_main("--config", str(self.config_path), "inspect", "/nonexistent.wbap")

        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
