"""
Encrypted backup and restore for wbap.

A backup is a single passphrase-protected file holding the installed plan,
the patient profile and the check-in history.

Usage:
    from wbap.backup import BackupManager

    # Create a backup
    manager = BackupManager(repository)
    result = manager.export_backup("correct-horse", output_path)

    # Read it back on another device
    restored = manager.decrypt_backup(text, "correct-horse")
    manager.apply_restore(restored)
"""

from wbap.backup.files import (
    ACCEPTED_EXTENSIONS,
    BACKUP_CONTENT_TYPE,
    BACKUP_FILE_EXTENSION,
    generate_backup_filename,
    is_valid_backup_file,
)
from wbap.backup.manager import (
    BackupManager,
    BackupResult,
    create_backup_text,
    read_backup_text,
)
from wbap.backup.payload import (
    BackupPayload,
    RestoreResult,
    build_payload,
    restore_payload,
)

__all__ = [
    "BackupManager",
    "BackupResult",
    "BackupPayload",
    "RestoreResult",
    "build_payload",
    "restore_payload",
    "create_backup_text",
    "read_backup_text",
    "generate_backup_filename",
    "is_valid_backup_file",
    "BACKUP_FILE_EXTENSION",
    "ACCEPTED_EXTENSIONS",
    "BACKUP_CONTENT_TYPE",
]
