"""
Error types for wbap.

Every failure a restore can hit falls into exactly one of four kinds. A
wrong passphrase and a tampered ciphertext both surface as
DecryptionFailedError with the same message.
"""

from __future__ import annotations

from enum import Enum


class RestoreErrorKind(str, Enum):
    """Kind of restore failure, used by the restore orchestrator."""

    INVALID_FORMAT = "invalid_format"
    INVALID_STRUCTURE = "invalid_structure"
    UNSUPPORTED_VERSION = "unsupported_version"
    DECRYPTION_FAILED = "decryption_failed"


class BackupError(Exception):
    """Base exception for backup and restore errors."""

    kind: RestoreErrorKind | None = None


class InvalidFormatError(BackupError):
    """Raised when the backup text cannot be parsed as an envelope at all."""

    kind = RestoreErrorKind.INVALID_FORMAT

    def __init__(
        self,
        message: str = "Invalid backup file format. Please select a valid .wbap file.",
    ) -> None:
        super().__init__(message)


class InvalidStructureError(BackupError):
    """Raised when a parsed envelope or payload is missing required fields."""

    kind = RestoreErrorKind.INVALID_STRUCTURE

    def __init__(
        self,
        message: str = "Invalid backup file structure. Please select a valid .wbap file.",
    ) -> None:
        super().__init__(message)


class UnsupportedVersionError(BackupError):
    """Raised when a backup was written by a newer format version."""

    kind = RestoreErrorKind.UNSUPPORTED_VERSION

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(
            f"This backup was created with a newer version of the app (v{version}). "
            "Please update to restore this backup."
        )


class DecryptionFailedError(BackupError):
    """
    Raised when authenticated decryption fails.

    Covers both a wrong passphrase and a corrupted or modified file. The
    two cases share one message.
    """

    kind = RestoreErrorKind.DECRYPTION_FAILED

    def __init__(self) -> None:
        super().__init__(
            "Decryption failed. Please check your passphrase and try again."
        )
