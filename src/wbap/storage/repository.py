"""
Record source and sink used by backup and restore.

BackupManager is handed a RecordRepository instead of reaching for a
global store, which keeps the crypto and payload code free of storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from wbap.records.models import CheckInRecord, PlanRecord, ProfileRecord

if TYPE_CHECKING:
    from wbap.backup.payload import RestoreResult


class StorageError(Exception):
    """Base exception for storage errors."""

    pass


class RecordRepository(ABC):
    """Read/write interface to the local plan data store."""

    @abstractmethod
    def get_plan(self) -> PlanRecord | None:
        """Return the most recently installed plan, or None."""

    @abstractmethod
    def get_profile(self) -> ProfileRecord | None:
        """Return the current patient profile, or None."""

    @abstractmethod
    def get_check_ins(self, action_plan_id: str) -> list[CheckInRecord]:
        """Return all check-ins for a plan, oldest first."""

    @abstractmethod
    def save_restore_result(self, result: RestoreResult) -> None:
        """Persist a restored plan, profile and check-in history."""
