"""
Record types — read-only snapshots of tenant objects and the structures derived from them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .config import GRAPH_NULL_DATETIME

COMPLIANT = "compliant"
NONCOMPLIANT = "noncompliant"

# Graph managedDeviceOwnerType → report owner type
_OWNER_TYPES = {
    "company": "corporate",
    "corporate": "corporate",
    "personal": "personal",
}

_FRACTION = re.compile(r"\.(\d+)")


def is_blank(value: Any) -> bool:
    """None or a whitespace-only string."""
    return value is None or (isinstance(value, str) and not value.strip())


def parse_graph_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a Graph ISO-8601 timestamp into an aware datetime.
    Returns None for blanks, Graph's year-1 placeholder and unparseable input.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if is_blank(value) or not isinstance(value, str) or value == GRAPH_NULL_DATETIME:
        return None
    # Graph emits 0 to 7 fractional digits; older fromisoformat needs exactly 6
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value.strip().replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.year <= 1:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _text(value: Any) -> Optional[str]:
    return None if is_blank(value) else str(value).strip()


@dataclass(frozen=True)
class DeviceRecord:
    """One Intune managed device."""
    id: str
    device_name: Optional[str] = None
    compliance_state: str = "unknown"   # compliant, noncompliant, or the raw Graph value
    serial_number: Optional[str] = None # May repeat across duplicate enrollments
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    operating_system: Optional[str] = None
    os_version: Optional[str] = None
    last_sync: Optional[datetime] = None
    enrolled: Optional[datetime] = None
    owner_type: str = "unknown"         # corporate, personal, unknown
    category: Optional[str] = None
    enrollment_type: Optional[str] = None
    user_principal_name: Optional[str] = None

    @classmethod
    def from_graph(cls, item: dict[str, Any]) -> "DeviceRecord":
        owner = (_text(item.get("managedDeviceOwnerType")) or "").lower()
        return cls(
            id=item.get("id") or "",
            device_name=_text(item.get("deviceName")),
            compliance_state=(_text(item.get("complianceState")) or "unknown").lower(),
            serial_number=_text(item.get("serialNumber")),
            model=_text(item.get("model")),
            manufacturer=_text(item.get("manufacturer")),
            operating_system=_text(item.get("operatingSystem")),
            os_version=_text(item.get("osVersion")),
            last_sync=parse_graph_datetime(item.get("lastSyncDateTime")),
            enrolled=parse_graph_datetime(item.get("enrolledDateTime")),
            owner_type=_OWNER_TYPES.get(owner, "unknown"),
            category=_text(item.get("deviceCategoryDisplayName")),
            enrollment_type=_text(item.get("deviceEnrollmentType")),
            user_principal_name=_text(item.get("userPrincipalName")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "Device Name": self.device_name,
            "Compliance State": self.compliance_state,
            "Serial Number": self.serial_number,
            "Model": self.model,
            "Manufacturer": self.manufacturer,
            "Operating System": self.operating_system,
            "OS Version": self.os_version,
            "Last Sync": self.last_sync,
            "Enrolled": self.enrolled,
            "Owner Type": self.owner_type,
            "Category": self.category,
            "Enrollment Type": self.enrollment_type,
            "User Principal Name": self.user_principal_name,
            "Device ID": self.id,
        }


DEVICE_COLUMNS = list(DeviceRecord(id="").to_row())


@dataclass(frozen=True)
class LicensedUser:
    """One directory user holding at least one license."""
    id: str
    display_name: Optional[str] = None
    user_principal_name: Optional[str] = None
    account_enabled: bool = True
    sku_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_graph(cls, item: dict[str, Any]) -> "LicensedUser":
        skus = frozenset(
            str(lic["skuId"]).lower()
            for lic in item.get("assignedLicenses") or []
            if lic.get("skuId")
        )
        return cls(
            id=item.get("id") or "",
            display_name=_text(item.get("displayName")),
            user_principal_name=_text(item.get("userPrincipalName")),
            account_enabled=bool(item.get("accountEnabled", True)),
            sku_ids=skus,
        )


@dataclass(frozen=True)
class DeletedDeviceEvent:
    """An Intune audit event recording a managed device deletion."""
    deleted_at: Optional[datetime]
    device_name: Optional[str]
    actor: Optional[str]
    activity: Optional[str]
    result: Optional[str]

    @classmethod
    def from_graph(cls, item: dict[str, Any]) -> "DeletedDeviceEvent":
        resources = item.get("resources") or [{}]
        actor = item.get("actor") or {}
        return cls(
            deleted_at=parse_graph_datetime(item.get("activityDateTime")),
            device_name=_text(resources[0].get("displayName")),
            actor=_text(actor.get("userPrincipalName")) or _text(actor.get("applicationDisplayName")),
            activity=_text(item.get("activity")) or _text(item.get("displayName")),
            result=_text(item.get("activityResult")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "Deleted": self.deleted_at,
            "Device Name": self.device_name,
            "Deleted By": self.actor,
            "Activity": self.activity,
            "Result": self.result,
        }


DELETED_DEVICE_COLUMNS = ["Deleted", "Device Name", "Deleted By", "Activity", "Result"]


@dataclass(frozen=True)
class FrequencyEntry:
    label: str
    count: int


FrequencyTable = tuple[FrequencyEntry, ...]


@dataclass(frozen=True)
class Violation:
    """A user whose tracked licenses break at least one rule."""
    user: LicensedUser
    matched_licenses: tuple[str, ...]
    rules: tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.rules)

    def to_row(self) -> dict[str, Any]:
        return {
            "Display Name": self.user.display_name,
            "User Principal Name": self.user.user_principal_name,
            "Enabled": "Yes" if self.user.account_enabled else "No",
            "Tracked Licenses": ", ".join(self.matched_licenses),
            "Violations": ", ".join(self.rules),
            "Violation Count": self.count,
        }


VIOLATION_COLUMNS = [
    "Display Name", "User Principal Name", "Enabled",
    "Tracked Licenses", "Violations", "Violation Count",
]


@dataclass(frozen=True)
class DuplicateGroup:
    """Devices sharing one serial number, oldest enrollment first."""
    key: str
    records: tuple[DeviceRecord, ...]

    @property
    def size(self) -> int:
        return len(self.records)
