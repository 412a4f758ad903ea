"""
SQLite-backed store for locally held plan data.

Storage Structure:
    data/
        wbap.db        # SQLite database with plans, profiles and check-ins

The plan content and the check-in id lists are stored as JSON text. Every
row has an auto-incrementing local id which is never exported in backups.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from wbap.records.models import (
    CheckInRecord,
    NotificationFrequency,
    NotificationTime,
    PlanRecord,
    ProfileRecord,
    Zone,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from wbap.storage.repository import RecordRepository, StorageError

if TYPE_CHECKING:
    from wbap.backup.payload import RestoreResult

logger = logging.getLogger(__name__)

# Database schema version for migrations
SCHEMA_VERSION = 1

DATABASE_FILE = "wbap.db"

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Installed plans
CREATE TABLE IF NOT EXISTS local_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action_plan_id TEXT NOT NULL UNIQUE,
    revision_id TEXT NOT NULL,
    revision_version INTEGER NOT NULL,
    access_code TEXT NOT NULL,
    plan_payload_json TEXT NOT NULL,
    device_install_id TEXT NOT NULL,
    installed_at TEXT NOT NULL,
    last_accessed_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_plans_access_code ON local_plans(access_code);
CREATE INDEX IF NOT EXISTS idx_plans_installed_at ON local_plans(installed_at);

-- Patient profiles
CREATE TABLE IF NOT EXISTS patient_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action_plan_id TEXT,
    display_name TEXT NOT NULL,
    onboarding_complete INTEGER NOT NULL,
    notifications_enabled INTEGER NOT NULL,
    notification_frequency TEXT NOT NULL,
    notification_time TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_profiles_plan ON patient_profiles(action_plan_id);

-- Check-in history (append-only)
CREATE TABLE IF NOT EXISTS check_ins (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action_plan_id TEXT NOT NULL,
    zone TEXT NOT NULL,
    strategies_used_json TEXT NOT NULL,
    supportive_adults_contacted_json TEXT NOT NULL,
    help_methods_selected_json TEXT NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_check_ins_plan ON check_ins(action_plan_id, created_at);
"""


class SQLiteRecordStore(RecordRepository):
    """
    Local plan data store on top of SQLite.

    Example:
        store = SQLiteRecordStore(data_dir=Path("./data"))
        store.save_plan(plan)
        store.add_check_in(check_in)

        manager = BackupManager(store)

    Attributes:
        data_dir: Base directory for data storage.
        db_path: Path to the SQLite database file.
    """

    def __init__(self, data_dir: Path | str | None = None) -> None:
        """
        Initialize the store.

        Args:
            data_dir: Base directory for data storage. Defaults to ~/.wbap/data
        """
        if data_dir is None:
            data_dir = Path.home() / ".wbap" / "data"
        elif isinstance(data_dir, str):
            data_dir = Path(data_dir)

        self.data_dir = data_dir
        self.db_path = data_dir / DATABASE_FILE

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(CREATE_TABLES_SQL)

            cursor = conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()

            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, format_timestamp(utc_now())),
                )
                logger.info(f"Initialized database schema version {SCHEMA_VERSION}")
            elif row[0] < SCHEMA_VERSION:
                logger.warning(
                    f"Database schema version {row[0]} is older than "
                    f"expected version {SCHEMA_VERSION}"
                )

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get a database connection with proper settings.

        Yields:
            SQLite connection with row factory set.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            isolation_level=None,  # Autocommit mode, we manage transactions manually
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # Plans

    def get_plan(self) -> PlanRecord | None:
        """Return the most recently installed plan, or None."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM local_plans ORDER BY installed_at DESC, id DESC LIMIT 1"
            ).fetchone()
        return self._row_to_plan(row) if row else None

    def save_plan(self, plan: PlanRecord) -> int:
        """
        Insert a plan, replacing any plan with the same action plan id.

        Returns:
            The local id of the stored plan.
        """
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                plan_id = self._upsert_plan(conn, plan)
                conn.execute("COMMIT")
                return plan_id
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"Failed to save plan: {e}") from e

    def _upsert_plan(self, conn: sqlite3.Connection, plan: PlanRecord) -> int:
        values = (
            plan.revision_id,
            plan.revision_version,
            plan.access_code,
            json.dumps(plan.plan_payload),
            plan.device_install_id,
            format_timestamp(plan.installed_at),
            format_timestamp(plan.last_accessed_at),
        )
        row = conn.execute(
            "SELECT id FROM local_plans WHERE action_plan_id = ?",
            (plan.action_plan_id,),
        ).fetchone()

        if row is not None:
            conn.execute(
                """
                UPDATE local_plans SET
                    revision_id = ?, revision_version = ?, access_code = ?,
                    plan_payload_json = ?, device_install_id = ?,
                    installed_at = ?, last_accessed_at = ?
                WHERE id = ?
                """,
                (*values, row["id"]),
            )
            return int(row["id"])

        cursor = conn.execute(
            """
            INSERT INTO local_plans (
                revision_id, revision_version, access_code, plan_payload_json,
                device_install_id, installed_at, last_accessed_at, action_plan_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (*values, plan.action_plan_id),
        )
        return int(cursor.lastrowid or 0)

    def _row_to_plan(self, row: sqlite3.Row) -> PlanRecord:
        return PlanRecord(
            id=row["id"],
            action_plan_id=row["action_plan_id"],
            revision_id=row["revision_id"],
            revision_version=row["revision_version"],
            access_code=row["access_code"],
            plan_payload=json.loads(row["plan_payload_json"]),
            device_install_id=row["device_install_id"],
            installed_at=parse_timestamp(row["installed_at"]),
            last_accessed_at=parse_timestamp(row["last_accessed_at"]),
        )

    # Profiles

    def get_profile(self) -> ProfileRecord | None:
        """Return the most recently created profile, or None."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM patient_profiles ORDER BY created_at DESC, id DESC LIMIT 1"
            ).fetchone()
        return self._row_to_profile(row) if row else None

    def save_profile(self, profile: ProfileRecord) -> int:
        """
        Insert a profile, replacing any profile for the same plan.

        Returns:
            The local id of the stored profile.
        """
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                profile_id = self._upsert_profile(conn, profile)
                conn.execute("COMMIT")
                return profile_id
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"Failed to save profile: {e}") from e

    def _upsert_profile(self, conn: sqlite3.Connection, profile: ProfileRecord) -> int:
        conn.execute(
            "DELETE FROM patient_profiles WHERE action_plan_id IS ?",
            (profile.action_plan_id,),
        )
        cursor = conn.execute(
            """
            INSERT INTO patient_profiles (
                action_plan_id, display_name, onboarding_complete,
                notifications_enabled, notification_frequency, notification_time,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                profile.action_plan_id,
                profile.display_name,
                1 if profile.onboarding_complete else 0,
                1 if profile.notifications_enabled else 0,
                profile.notification_frequency.value,
                profile.notification_time.value,
                format_timestamp(profile.created_at),
                format_timestamp(profile.updated_at),
            ),
        )
        return int(cursor.lastrowid or 0)

    def _row_to_profile(self, row: sqlite3.Row) -> ProfileRecord:
        return ProfileRecord(
            id=row["id"],
            action_plan_id=row["action_plan_id"],
            display_name=row["display_name"],
            onboarding_complete=bool(row["onboarding_complete"]),
            notifications_enabled=bool(row["notifications_enabled"]),
            notification_frequency=NotificationFrequency(row["notification_frequency"]),
            notification_time=NotificationTime(row["notification_time"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    # Check-ins

    def get_check_ins(self, action_plan_id: str) -> list[CheckInRecord]:
        """Return all check-ins for a plan, oldest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM check_ins
                WHERE action_plan_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (action_plan_id,),
            )
            return [self._row_to_check_in(row) for row in cursor]

    def add_check_in(self, check_in: CheckInRecord) -> int:
        """
        Append a check-in to the history.

        Returns:
            The local id of the stored check-in.
        """
        with self._get_connection() as conn:
            try:
                return self._insert_check_in(conn, check_in)
            except sqlite3.Error as e:
                raise StorageError(f"Failed to save check-in: {e}") from e

    def _insert_check_in(self, conn: sqlite3.Connection, check_in: CheckInRecord) -> int:
        cursor = conn.execute(
            """
            INSERT INTO check_ins (
                action_plan_id, zone, strategies_used_json,
                supportive_adults_contacted_json, help_methods_selected_json,
                notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                check_in.action_plan_id,
                check_in.zone.value,
                json.dumps(check_in.strategies_used),
                json.dumps(check_in.supportive_adults_contacted),
                json.dumps(check_in.help_methods_selected),
                check_in.notes,
                format_timestamp(check_in.created_at),
            ),
        )
        return int(cursor.lastrowid or 0)

    def _row_to_check_in(self, row: sqlite3.Row) -> CheckInRecord:
        return CheckInRecord(
            id=row["id"],
            action_plan_id=row["action_plan_id"],
            zone=Zone(row["zone"]),
            strategies_used=json.loads(row["strategies_used_json"]),
            supportive_adults_contacted=json.loads(row["supportive_adults_contacted_json"]),
            help_methods_selected=json.loads(row["help_methods_selected_json"]),
            notes=row["notes"],
            created_at=parse_timestamp(row["created_at"]),
        )

    # Restore

    def save_restore_result(self, result: RestoreResult) -> None:
        """
        Persist a restored backup in one transaction.

        The plan is upserted by action plan id. The restored profile replaces
        any profile for that plan; a backup without a profile clears it. The
        plan's check-in history is replaced by the restored history.

        Raises:
            StorageError: If any write fails. Nothing is written in that case.
        """
        action_plan_id = result.plan.action_plan_id

        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")

                self._upsert_plan(conn, result.plan)

                if result.profile is not None:
                    profile = result.profile
                    if profile.action_plan_id is None:
                        profile = replace(profile, action_plan_id=action_plan_id)
                    self._upsert_profile(conn, profile)
                else:
                    conn.execute(
                        "DELETE FROM patient_profiles WHERE action_plan_id = ?",
                        (action_plan_id,),
                    )

                conn.execute(
                    "DELETE FROM check_ins WHERE action_plan_id = ?",
                    (action_plan_id,),
                )
                for check_in in result.check_ins:
                    if not check_in.action_plan_id:
                        check_in = replace(check_in, action_plan_id=action_plan_id)
                    self._insert_check_in(conn, check_in)

                conn.execute("COMMIT")
                logger.info(
                    f"Restored plan {action_plan_id} with "
                    f"{len(result.check_ins)} check-ins"
                )

            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                logger.error(f"Failed to save restored backup: {e}")
                raise StorageError(f"Failed to save restored backup: {e}") from e

    def get_statistics(self) -> dict[str, Any]:
        """
        Get storage statistics.

        Returns:
            Dictionary with row counts and database size.
        """
        with self._get_connection() as conn:
            stats: dict[str, Any] = {}

            cursor = conn.execute("SELECT COUNT(*) FROM local_plans")
            stats["total_plans"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM patient_profiles")
            stats["total_profiles"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM check_ins")
            stats["total_check_ins"] = cursor.fetchone()[0]

            cursor = conn.execute(
                "SELECT zone, COUNT(*) as count FROM check_ins GROUP BY zone"
            )
            stats["check_ins_by_zone"] = {row["zone"]: row["count"] for row in cursor}

            stats["database_size_bytes"] = self.db_path.stat().st_size

            return stats
