"""
Records for an installed action plan: plan snapshot, profile and check-ins.
"""

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

__all__ = [
    "PlanRecord",
    "ProfileRecord",
    "CheckInRecord",
    "Zone",
    "NotificationFrequency",
    "NotificationTime",
    "utc_now",
    "parse_timestamp",
    "format_timestamp",
]
