"""
Intune managed device source.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import DeviceRecord
from .base import RecordSource

logger = logging.getLogger("tenant_reports.sources.devices")

DEVICE_SELECT = (
    "id,deviceName,complianceState,serialNumber,model,manufacturer,"
    "operatingSystem,osVersion,lastSyncDateTime,enrolledDateTime,"
    "managedDeviceOwnerType,deviceCategoryDisplayName,deviceEnrollmentType,"
    "userPrincipalName"
)


class ManagedDeviceSource(RecordSource[DeviceRecord]):
    name = "managed_devices"
    endpoint = "deviceManagement/managedDevices"
    filter_field = "operatingSystem"

    def build_params(self) -> dict[str, Any]:
        return {"$select": DEVICE_SELECT}

    def convert(self, item: dict[str, Any]) -> DeviceRecord:
        return DeviceRecord.from_graph(item)
