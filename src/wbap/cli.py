"""
Command-line interface for wbap.

Provides commands to export the locally held plan data as an encrypted
backup file, restore such a file, and inspect a file without decrypting it.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import platform as platform_module
import sys
from pathlib import Path
from typing import Any, NoReturn

from wbap import __version__
from wbap.backup import BackupManager, is_valid_backup_file
from wbap.config.settings import (
    DEFAULT_CONFIG_DIR,
    ConfigurationError,
    Settings,
    load_config,
)
from wbap.crypto import parse_envelope
from wbap.errors import BackupError
from wbap.restore import RestoreOrchestrator, RestoreState
from wbap.storage import SQLiteRecordStore, StorageError

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
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the wbap CLI."""
    parser = argparse.ArgumentParser(
        prog="wbap",
        description="Encrypted backup and restore for Well-Being Action Plans",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"wbap {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.wbap/config.yaml)",
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

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show system information and storage statistics",
        description="Display version, configuration paths and local data statistics.",
    )
    info_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    info_parser.set_defaults(func=cmd_info)

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Create an encrypted backup of the installed plan",
        description="Export the plan, profile and check-in history to a passphrase-protected file.",
    )
    backup_parser.add_argument(
        "--output",
        "-o",
        metavar="PATH",
        help="Output directory for the backup file (default: backup.output_dir)",
    )
    backup_parser.add_argument(
        "--nickname",
        metavar="NAME",
        help="Name used in the backup filename (default: the plan nickname)",
    )
    backup_parser.set_defaults(func=cmd_backup)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore from an encrypted backup file",
        description="Decrypt a backup file and replace the local plan data with it.",
    )
    restore_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.wbap or .json)",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompts",
    )
    restore_parser.set_defaults(func=cmd_restore)

    # inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Check a backup file without decrypting it",
        description="Validate the envelope of a backup file and show its format version.",
    )
    inspect_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file",
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path)


def prompt_new_passphrase() -> str:
    """Prompt for a new backup passphrase until it is entered twice."""
    while True:
        passphrase = getpass.getpass("Enter backup passphrase: ")
        if not passphrase:
            output_error("Error: Passphrase cannot be empty.")
            continue

        confirm = getpass.getpass("Confirm passphrase: ")
        if passphrase != confirm:
            output_error("Error: Passphrases do not match.")
            continue

        return passphrase


def cmd_info(args: argparse.Namespace) -> int:
    """Show system information and storage statistics."""
    info: dict[str, Any] = {
        "version": __version__,
        "python_version": platform_module.python_version(),
        "platform": platform_module.platform(),
        "config_dir": str(DEFAULT_CONFIG_DIR),
        "data_dir": None,
        "storage": None,
    }

    try:
        settings = _load_settings(args)
        info["data_dir"] = settings.data_dir

        try:
            store = SQLiteRecordStore(Path(settings.data_dir))
            stats = store.get_statistics()
            plan = store.get_plan()
            info["storage"] = {
                "total_plans": stats["total_plans"],
                "total_profiles": stats["total_profiles"],
                "total_check_ins": stats["total_check_ins"],
                "check_ins_by_zone": stats["check_ins_by_zone"],
                "database_size_mb": round(stats["database_size_bytes"] / 1024 / 1024, 2),
                "installed_plan": plan.action_plan_id if plan else None,
            }
        except (StorageError, OSError) as e:
            info["storage"] = {"error": str(e)}

    except ConfigurationError:
        pass  # Not configured yet

    if args.json:
        output(json.dumps(info, indent=2, default=str), force=True)
        return 0

    output("wbap System Information")
    output("=" * 60)
    output()
    output(f"Version: {info['version']}")
    output(f"Python: {info['python_version']}")
    output(f"Platform: {info['platform']}")
    output()
    output("Paths:")
    output(f"  Config directory: {info['config_dir']}")
    if info["data_dir"]:
        output(f"  Data directory: {info['data_dir']}")
    output()
    if info["storage"] and "error" not in info["storage"]:
        storage = info["storage"]
        output("Storage Statistics:")
        output(f"  Installed plan: {storage['installed_plan'] or 'None'}")
        output(f"  Profiles: {storage['total_profiles']:,}")
        output(f"  Check-ins: {storage['total_check_ins']:,}")
        for zone, count in sorted(storage["check_ins_by_zone"].items()):
            output(f"    {zone}: {count:,}")
        output(f"  Database size: {storage['database_size_mb']:.2f} MB")

    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Create an encrypted backup of the installed plan."""
    settings = _load_settings(args)

    output("wbap Backup")
    output("=" * 50)
    output()

    output_path = Path(args.output) if args.output else Path(settings.backup.output_dir)
    nickname = args.nickname or settings.backup.default_nickname or None

    manager = BackupManager(SQLiteRecordStore(Path(settings.data_dir)))

    output(f"Data directory: {settings.data_dir}")
    output(f"Output directory: {output_path}")
    output()
    output("Choose a passphrase. You will need it to restore this backup;")
    output("it cannot be recovered if forgotten.")
    output()

    passphrase = prompt_new_passphrase()

    output()
    output("Encrypting backup...")
    result = manager.export_backup(
        passphrase,
        output_path=output_path,
        nickname=nickname,
        extension=settings.backup.extension,
    )

    if not result.success:
        output()
        output_error(f"Backup failed: {result.error}")
        return 1

    output()
    output("Backup created successfully!")
    output()
    output(f"  File: {result.path}")
    output(f"  Size: {result.size_bytes:,} bytes")
    output(f"  Profile included: {'Yes' if result.includes_profile else 'No'}")
    output(f"  Check-ins: {result.check_in_count}")
    output()
    output("To restore from this backup, run:")
    output(f"  wbap restore {result.path}")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore from an encrypted backup file."""
    settings = _load_settings(args)

    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    if not is_valid_backup_file(backup_path.name):
        output_error("Error: Please select a .wbap backup file.")
        return 1

    output("wbap Restore")
    output("=" * 50)
    output()
    output(f"Backup file: {backup_path}")
    output()

    manager = BackupManager(SQLiteRecordStore(Path(settings.data_dir)))
    flow = RestoreOrchestrator(manager.decrypt_backup)
    flow.select_file(backup_path.read_bytes(), backup_path.name)

    while True:
        flow.set_passphrase(getpass.getpass("Backup passphrase: "))
        state = flow.submit()

        if state is RestoreState.SOFT_ERROR:
            output_error(flow.message or "")
            flow.dismiss_error()
            continue

        if state is RestoreState.HARD_ERROR:
            output()
            output_error("Restore failed")
            output_error(flow.message or "")
            output()
            output("Check the file and passphrase, then run the restore again.")
            return 1

        break

    result = flow.result
    if state is not RestoreState.SUCCESS or result is None:
        output_error("Restore failed: the backup produced no data to restore.")
        return 1

    output()
    output("Backup decrypted.")
    output(f"  Plan: {result.plan.action_plan_id}")
    output(f"  Profile: {result.profile.display_name if result.profile else 'None'}")
    output(f"  Check-ins: {len(result.check_ins)}")
    output()

    if not args.force:
        output("WARNING: This will replace the plan data on this device.")
        response = input("Proceed with restore? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Restore cancelled.")
            return 0

    try:
        manager.apply_restore(result)
    except StorageError as e:
        output_error(f"Restore failed: {e}")
        return 1

    output()
    output("Restore completed successfully!")
    if result.needs_onboarding:
        output("No completed profile was found in the backup; onboarding will run again.")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Validate a backup envelope without decrypting it."""
    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    try:
        envelope = parse_envelope(backup_path.read_bytes())
    except BackupError as e:
        output_error(f"Invalid backup: {e}")
        return 1

    output(f"Backup file: {backup_path}")
    output(f"  Format version: {envelope.version}")
    output(f"  Encrypted size: {len(envelope.ciphertext):,} bytes")
    output(f"  Extension recognised: {'Yes' if is_valid_backup_file(backup_path.name) else 'No'}")
    return 0


def main() -> NoReturn:
    """Main entry point for wbap CLI."""
    parser = create_parser()
    args = parser.parse_args()

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
