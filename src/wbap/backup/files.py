"""
Backup file naming and extension checks.
"""

from __future__ import annotations

import re
from datetime import date

from wbap.records.models import utc_now

BACKUP_FILE_EXTENSION = ".wbap"
ACCEPTED_EXTENSIONS = (".wbap", ".json")

# Must not reveal what the file contains
BACKUP_CONTENT_TYPE = "application/octet-stream"

DEFAULT_BACKUP_NAME = "wellbeing-plan"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_name(name: str) -> str:
    """Replace every non-alphanumeric character with a hyphen and lowercase."""
    return _UNSAFE_CHARS.sub("-", name).lower()


def generate_backup_filename(
    nickname: str | None = None,
    today: date | None = None,
    extension: str = BACKUP_FILE_EXTENSION,
) -> str:
    """
    Suggest a filename for a new backup.

    Format: `<sanitized-nickname>-backup-<YYYY-MM-DD><extension>`

    Args:
        nickname: Plan nickname. Falls back to DEFAULT_BACKUP_NAME.
        today: Date to stamp (defaults to the current UTC date).
        extension: File extension, one of ACCEPTED_EXTENSIONS.

    Raises:
        ValueError: If the extension is not accepted.
    """
    if extension not in ACCEPTED_EXTENSIONS:
        raise ValueError(
            f"Invalid backup extension: {extension}. "
            f"Must be one of: {', '.join(ACCEPTED_EXTENSIONS)}"
        )

    stamp = (today or utc_now().date()).isoformat()
    safe_name = sanitize_name(nickname) if nickname else DEFAULT_BACKUP_NAME
    return f"{safe_name}-backup-{stamp}{extension}"


def is_valid_backup_file(filename: str) -> bool:
    """Check whether a filename has an accepted backup extension."""
    return filename.lower().endswith(ACCEPTED_EXTENSIONS)
