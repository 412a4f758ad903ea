"""
Plaintext backup payload.

The payload is what gets encrypted into a backup file. It only exists in
memory: it is built from the current store state for each export and
discarded after encryption, and on restore it is rebuilt from the
decrypted bytes and turned into a RestoreResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from wbap.crypto.kdf import FORMAT_VERSION
from wbap.errors import InvalidStructureError, UnsupportedVersionError
from wbap.records.models import (
    CheckInRecord,
    PlanRecord,
    ProfileRecord,
    format_timestamp,
    parse_timestamp,
    utc_now,
)


@dataclass
class BackupPayload:
    """
    Decrypted contents of a backup file.

    Attributes:
        version: Payload format version.
        created_at: When the backup was made.
        plan: The installed plan. Always present.
        profile: Patient profile, if one existed.
        check_ins: Check-in history, if any.
    """

    version: int
    created_at: datetime
    plan: PlanRecord
    profile: ProfileRecord | None = None
    check_ins: list[CheckInRecord] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the payload dictionary. Local ids are never included."""
        data: dict[str, Any] = {
            "version": self.version,
            "createdAt": format_timestamp(self.created_at),
            "plan": self.plan.to_dict(),
        }
        if self.profile is not None:
            data["profile"] = self.profile.to_dict()
        if self.check_ins:
            data["checkIns"] = [check_in.to_dict() for check_in in self.check_ins]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupPayload:
        """
        Create a payload from a decrypted dictionary.

        Older versions are read as compatible subsets of the current one.

        Raises:
            InvalidStructureError: If `plan` is missing or a record is malformed.
            UnsupportedVersionError: If the payload version is newer than supported.
        """
        plan_data = data.get("plan")
        if not isinstance(plan_data, dict):
            raise InvalidStructureError()

        version = data.get("version", FORMAT_VERSION)
        if isinstance(version, float) and version.is_integer():
            version = int(version)
        if isinstance(version, bool) or not isinstance(version, int):
            raise InvalidStructureError()
        if version > FORMAT_VERSION:
            raise UnsupportedVersionError(version)

        profile_data = data.get("profile")
        check_ins_data = data.get("checkIns")
        if profile_data is not None and not isinstance(profile_data, dict):
            raise InvalidStructureError()
        if check_ins_data is not None and not isinstance(check_ins_data, list):
            raise InvalidStructureError()

        try:
            plan = PlanRecord.from_dict(plan_data)
            profile = ProfileRecord.from_dict(profile_data) if profile_data else None
            check_ins = [CheckInRecord.from_dict(item) for item in check_ins_data or []]
            created_at = parse_timestamp(data.get("createdAt") or utc_now())
        except (KeyError, TypeError, ValueError, AttributeError, RecursionError) as e:
            raise InvalidStructureError() from e

        return cls(
            version=version,
            created_at=created_at,
            plan=plan,
            profile=profile,
            check_ins=check_ins or None,
        )


@dataclass
class RestoreResult:
    """
    Records recovered from a backup, ready to hand to the store.

    Plan and profile timestamps are set to the restore time; check-in
    timestamps are the originals.

    Attributes:
        plan: Restored plan.
        profile: Restored profile, or None if onboarding must be redone.
        check_ins: Restored check-in history (possibly empty).
    """

    plan: PlanRecord
    profile: ProfileRecord | None = None
    check_ins: list[CheckInRecord] = field(default_factory=list)

    @property
    def has_profile(self) -> bool:
        return self.profile is not None

    @property
    def needs_onboarding(self) -> bool:
        """True if the backup had no profile and onboarding must be redone."""
        return self.profile is None or not self.profile.onboarding_complete


def build_payload(
    plan: PlanRecord,
    profile: ProfileRecord | None = None,
    check_ins: list[CheckInRecord] | None = None,
    now: datetime | None = None,
) -> BackupPayload:
    """
    Build a backup payload from store records.

    Local store ids are stripped from every record. An empty check-in
    list is treated the same as no check-ins.

    Args:
        plan: Installed plan.
        profile: Patient profile, if any.
        check_ins: Check-in history, if any.
        now: Backup time (defaults to the current UTC time).

    Returns:
        BackupPayload at the current format version.
    """
    return BackupPayload(
        version=FORMAT_VERSION,
        created_at=now or utc_now(),
        plan=replace(plan, id=None),
        profile=replace(profile, id=None) if profile is not None else None,
        check_ins=[replace(c, id=None) for c in check_ins] if check_ins else None,
    )


def restore_payload(payload: BackupPayload, now: datetime | None = None) -> RestoreResult:
    """
    Turn a decrypted payload into records to persist.

    Restoring counts as a fresh install, so the plan install/access times
    and profile created/updated times become `now`. Check-ins keep their
    original `created_at`.

    Args:
        payload: Validated backup payload.
        now: Restore time (defaults to the current UTC time).

    Returns:
        RestoreResult for the store.
    """
    now = now or utc_now()

    plan = replace(payload.plan, id=None, installed_at=now, last_accessed_at=now)

    profile = None
    if payload.profile is not None:
        profile = replace(payload.profile, id=None, created_at=now, updated_at=now)

    check_ins = [replace(c, id=None) for c in payload.check_ins or []]

    return RestoreResult(plan=plan, profile=profile, check_ins=check_ins)
