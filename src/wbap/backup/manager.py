"""
Backup and restore manager for wbap.

Exports the locally held plan, profile and check-in history into a single
passphrase-protected file, and reads such a file back into records ready
to persist. Reading a backup never touches storage; persisting the
result is a separate step.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from wbap.backup.files import BACKUP_FILE_EXTENSION, generate_backup_filename
from wbap.backup.payload import BackupPayload, RestoreResult, build_payload, restore_payload
from wbap.crypto.engine import decrypt_json, encrypt_json, parse_envelope
from wbap.errors import BackupError
from wbap.records.models import utc_now
from wbap.storage.repository import RecordRepository

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Result of a backup export."""

    success: bool
    path: Path | None = None
    size_bytes: int = 0
    check_in_count: int = 0
    includes_profile: bool = False
    error: str | None = None


def create_backup_text(payload: BackupPayload, passphrase: str) -> str:
    """Encrypt a payload and return the backup file text."""
    envelope = encrypt_json(payload.to_dict(), passphrase)
    return envelope.to_json(indent=2)


def read_backup_text(text: str | bytes, passphrase: str) -> BackupPayload:
    """
    Parse, decrypt and validate backup file text.

    Each call derives the key and decrypts from scratch.

    Raises:
        InvalidFormatError: If the text is not a backup envelope.
        InvalidStructureError: If the envelope or payload is incomplete.
        UnsupportedVersionError: If the backup is from a newer format.
        DecryptionFailedError: If the passphrase is wrong or the file was modified.
    """
    envelope = parse_envelope(text)
    data = decrypt_json(envelope, passphrase)
    return BackupPayload.from_dict(data)


class BackupManager:
    """
    Manages backup export and restore for locally held plan data.

    The record store is injected so the manager can run against any
    RecordRepository, including an in-memory one in tests.

    Usage:
        manager = BackupManager(SQLiteRecordStore(data_dir))

        result = manager.export_backup("correct-horse", Path("~/Downloads"))

        restored = manager.decrypt_backup(text, "correct-horse")
        manager.apply_restore(restored)
    """

    def __init__(self, repository: RecordRepository) -> None:
        """
        Initialize backup manager.

        Args:
            repository: Source of records for export and sink for restores.
        """
        self.repository = repository

    def build_current_payload(self) -> BackupPayload | None:
        """Build a payload from the current store state, or None if no plan is installed."""
        plan = self.repository.get_plan()
        if plan is None:
            return None

        profile = self.repository.get_profile()
        check_ins = self.repository.get_check_ins(plan.action_plan_id)

        return build_payload(plan, profile, check_ins)

    def create_backup(self, passphrase: str) -> str | None:
        """
        Create encrypted backup text of all local data.

        Args:
            passphrase: Passphrase to encrypt with.

        Returns:
            Backup file text, or None if there is no plan to back up.
        """
        payload = self.build_current_payload()
        if payload is None:
            logger.info("No installed plan, nothing to back up")
            return None

        return create_backup_text(payload, passphrase)

    def export_backup(
        self,
        passphrase: str,
        output_path: Path | None = None,
        nickname: str | None = None,
        extension: str = BACKUP_FILE_EXTENSION,
    ) -> BackupResult:
        """
        Write an encrypted backup file.

        Args:
            passphrase: Passphrase to encrypt with.
            output_path: Directory to save the backup (default: current directory).
            nickname: Name for the file; defaults to the plan's patient nickname.
            extension: File extension (".wbap" or ".json").

        Returns:
            BackupResult with success status and file details.
        """
        try:
            if output_path is None:
                output_path = Path.cwd()
            output_path = Path(output_path).expanduser()

            if output_path.is_file():
                return BackupResult(
                    success=False,
                    error=f"Output path is a file: {output_path}",
                )

            payload = self.build_current_payload()
            if payload is None:
                return BackupResult(
                    success=False,
                    error="No plan to back up. Install a plan first.",
                )

            text = create_backup_text(payload, passphrase)

            output_path.mkdir(parents=True, exist_ok=True)
            filename = generate_backup_filename(
                nickname or payload.plan.nickname,
                today=payload.created_at.date(),
                extension=extension,
            )
            backup_path = output_path / filename
            self._write_secure_file(backup_path, text.encode("utf-8"))

            size_bytes = backup_path.stat().st_size
            check_in_count = len(payload.check_ins or [])

            logger.info(f"Backup created: {backup_path} ({size_bytes:,} bytes)")

            return BackupResult(
                success=True,
                path=backup_path,
                size_bytes=size_bytes,
                check_in_count=check_in_count,
                includes_profile=payload.profile is not None,
            )

        except (OSError, ValueError) as e:
            logger.exception("Backup failed")
            return BackupResult(success=False, error=str(e))

    def decrypt_backup(self, text: str | bytes, passphrase: str) -> RestoreResult:
        """
        Decrypt and validate backup text into records ready to persist.

        Has no side effects on the store.

        Raises:
            BackupError: One of its four subclasses, see read_backup_text().
        """
        try:
            payload = read_backup_text(text, passphrase)
        except BackupError as e:
            logger.warning(f"Backup could not be read: {e.kind.value if e.kind else e}")
            raise

        result = restore_payload(payload, now=utc_now())
        logger.info(
            f"Backup from {payload.created_at.isoformat()} decrypted: "
            f"plan {result.plan.action_plan_id}, {len(result.check_ins)} check-ins"
        )
        return result

    def apply_restore(self, result: RestoreResult) -> None:
        """
        Persist a restore result to the store.

        Raises:
            StorageError: If the store rejects the write.
        """
        self.repository.save_restore_result(result)

    def _write_secure_file(self, path: Path, data: bytes) -> None:
        """
        Write data to file with owner-only permissions.

        Uses atomic write (write to temp, then rename) to prevent
        partial writes from corrupting the file.
        """
        temp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            temp_path.write_bytes(data)

            try:
                os.chmod(temp_path, 0o600)
            except OSError:
                # Windows or permission error - continue anyway
                pass

            temp_path.replace(path)

        except Exception:
            if temp_path.exists():
                temp_path.unlink()
            raise
