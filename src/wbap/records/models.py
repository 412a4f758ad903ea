"""
Data models for locally held plan data.

This module defines the records a patient device keeps for an installed
action plan: the plan snapshot itself, the patient profile and the
check-in history.

Schema Design Decisions:
    - `id` is the local auto-generated store key and is never exported
    - Dictionaries use the camelCase keys of the backup file format
    - Timestamps are timezone-aware UTC datetimes, ISO-8601 in dictionaries
    - The plan content (skills, supportive adults, help methods, crisis
      resources) is an opaque nested dictionary, copied but never interpreted
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class Zone(str, Enum):
    """Patient-reported well-being zone at check-in time."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class NotificationFrequency(str, Enum):
    """How often check-in reminders are sent."""

    NONE = "none"
    DAILY = "daily"
    EVERY_FEW_DAYS = "every_few_days"
    WEEKLY = "weekly"


class NotificationTime(str, Enum):
    """Preferred time of day for check-in reminders."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def parse_timestamp(value: datetime | str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are assumed to be UTC. A trailing "Z" is accepted.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise TypeError(f"Expected ISO-8601 timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 in UTC."""
    return parse_timestamp(value).isoformat()


def _string(data: dict[str, Any], key: str, default: str | None = None) -> str | None:
    """Read a string field. `None` falls back to the default; other types raise ValueError."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    """Read a list of strings. A missing or null field is an empty list."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key} must be a list of strings")
    return list(value)


@dataclass
class PlanRecord:
    """
    Locally installed action plan.

    Attributes:
        action_plan_id: Server action plan identifier (UUID).
        revision_id: Revision this install is based on.
        revision_version: Revision version number.
        access_code: Access code the plan was installed with.
        plan_payload: Immutable snapshot of the plan content.
        device_install_id: Identifier of the install on this device.
        installed_at: When the plan was installed locally.
        last_accessed_at: When the plan was last viewed.
        id: Local store key, never exported.

    Database Table: local_plans
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - action_plan_id TEXT NOT NULL UNIQUE
        - revision_id TEXT NOT NULL
        - revision_version INTEGER NOT NULL
        - access_code TEXT NOT NULL
        - plan_payload_json TEXT NOT NULL
        - device_install_id TEXT NOT NULL
        - installed_at TEXT NOT NULL
        - last_accessed_at TEXT NOT NULL
    """

    action_plan_id: str
    revision_id: str = ""
    revision_version: int = 1
    access_code: str = ""
    plan_payload: dict[str, Any] = field(default_factory=dict)
    device_install_id: str = ""
    installed_at: datetime = field(default_factory=utc_now)
    last_accessed_at: datetime = field(default_factory=utc_now)
    id: int | None = None

    def to_dict(self, include_id: bool = False) -> dict[str, Any]:
        """Convert to a dictionary with backup file keys."""
        data: dict[str, Any] = {
            "actionPlanId": self.action_plan_id,
            "revisionId": self.revision_id,
            "revisionVersion": self.revision_version,
            "accessCode": self.access_code,
            "planPayload": copy.deepcopy(self.plan_payload),
            "deviceInstallId": self.device_install_id,
            "installedAt": format_timestamp(self.installed_at),
            "lastAccessedAt": format_timestamp(self.last_accessed_at),
        }
        if include_id and self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanRecord:
        """Create from dictionary. Missing timestamps default to now."""
        now = utc_now()
        action_plan_id = _string(data, "actionPlanId")
        if not action_plan_id:
            raise ValueError("actionPlanId is required")
        return cls(
            action_plan_id=action_plan_id,
            revision_id=_string(data, "revisionId", ""),
            revision_version=int(data.get("revisionVersion", 1)),
            access_code=_string(data, "accessCode", ""),
            plan_payload=copy.deepcopy(data.get("planPayload") or {}),
            device_install_id=_string(data, "deviceInstallId", ""),
            installed_at=parse_timestamp(data.get("installedAt") or now),
            last_accessed_at=parse_timestamp(data.get("lastAccessedAt") or now),
            id=data.get("id"),
        )

    @property
    def nickname(self) -> str | None:
        """Patient nickname from the plan content, if present."""
        value = self.plan_payload.get("patientNickname")
        return str(value) if value else None


@dataclass
class ProfileRecord:
    """
    Patient profile for an installed plan.

    Attributes:
        display_name: Name shown in the app.
        onboarding_complete: True once onboarding has been finished.
        notifications_enabled: Whether check-in reminders are on.
        notification_frequency: Reminder frequency.
        notification_time: Preferred reminder time of day.
        created_at: When the profile was created.
        updated_at: When the profile was last changed.
        action_plan_id: Plan this profile belongs to.
        id: Local store key, never exported.
    """

    display_name: str
    onboarding_complete: bool = False
    notifications_enabled: bool = False
    notification_frequency: NotificationFrequency = NotificationFrequency.NONE
    notification_time: NotificationTime = NotificationTime.MORNING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    action_plan_id: str | None = None
    id: int | None = None

    def to_dict(self, include_id: bool = False) -> dict[str, Any]:
        """Convert to a dictionary with backup file keys."""
        data: dict[str, Any] = {
            "displayName": self.display_name,
            "onboardingComplete": self.onboarding_complete,
            "notificationsEnabled": self.notifications_enabled,
            "notificationFrequency": self.notification_frequency.value,
            "notificationTime": self.notification_time.value,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if self.action_plan_id is not None:
            data["actionPlanId"] = self.action_plan_id
        if include_id and self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileRecord:
        """Create from dictionary."""
        now = utc_now()
        display_name = data.get("displayName", "")
        if not isinstance(display_name, str):
            raise ValueError("displayName must be a string")
        return cls(
            display_name=display_name,
            onboarding_complete=bool(data.get("onboardingComplete", False)),
            notifications_enabled=bool(data.get("notificationsEnabled", False)),
            notification_frequency=NotificationFrequency(
                data.get("notificationFrequency", NotificationFrequency.NONE.value)
            ),
            notification_time=NotificationTime(
                data.get("notificationTime", NotificationTime.MORNING.value)
            ),
            created_at=parse_timestamp(data.get("createdAt") or now),
            updated_at=parse_timestamp(data.get("updatedAt") or now),
            action_plan_id=_string(data, "actionPlanId"),
            id=data.get("id"),
        )


@dataclass
class CheckInRecord:
    """
    A single check-in from the patient's history.

    Check-ins are an append-only ledger: `created_at` is historical and is
    carried through backup and restore unchanged.

    Attributes:
        action_plan_id: Plan the check-in was made against.
        zone: Reported well-being zone.
        created_at: When the check-in was made.
        strategies_used: Skill ids used.
        supportive_adults_contacted: Supportive adult ids contacted.
        help_methods_selected: Help method ids selected.
        notes: Optional free text.
        id: Local store key, never exported.
    """

    action_plan_id: str
    zone: Zone
    created_at: datetime
    strategies_used: list[str] = field(default_factory=list)
    supportive_adults_contacted: list[str] = field(default_factory=list)
    help_methods_selected: list[str] = field(default_factory=list)
    notes: str | None = None
    id: int | None = None

    def to_dict(self, include_id: bool = False) -> dict[str, Any]:
        """Convert to a dictionary with backup file keys."""
        data: dict[str, Any] = {
            "actionPlanId": self.action_plan_id,
            "zone": self.zone.value,
            "strategiesUsed": list(self.strategies_used),
            "supportiveAdultsContacted": list(self.supportive_adults_contacted),
            "helpMethodsSelected": list(self.help_methods_selected),
            "createdAt": format_timestamp(self.created_at),
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if include_id and self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheckInRecord:
        """Create from dictionary. `zone` and `createdAt` are required."""
        return cls(
            action_plan_id=_string(data, "actionPlanId", ""),
            zone=Zone(data["zone"]),
            created_at=parse_timestamp(data["createdAt"]),
            strategies_used=_string_list(data, "strategiesUsed"),
            supportive_adults_contacted=_string_list(data, "supportiveAdultsContacted"),
            help_methods_selected=_string_list(data, "helpMethodsSelected"),
            notes=_string(data, "notes"),
            id=data.get("id"),
        )
