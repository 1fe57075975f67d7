"""
Deleted device source — Intune audit events for managed device deletions.
Used as a secondary lookup by the device history report.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from ..graph.client import GraphClient
from ..models import DeletedDeviceEvent
from .base import RecordSource

logger = logging.getLogger("tenant_reports.sources.history")


class DeletedDeviceSource(RecordSource[DeletedDeviceEvent]):
    name = "deleted_devices"
    endpoint = "deviceManagement/auditEvents"
    allow_empty = True

    def __init__(self, graph: GraphClient, days: int = 30, now: Optional[datetime] = None):
        super().__init__(graph)
        self.days = days
        self.now = now or datetime.now(timezone.utc)

    @property
    def since(self) -> datetime:
        return self.now - timedelta(days=self.days)

    def build_params(self) -> dict[str, Any]:
        since = self.since.strftime("%Y-%m-%dT%H:%M:%SZ")
        return {
            "$filter": (
                "category eq 'Device' and activityOperationType eq 'Delete' "
                f"and activityDateTime ge {since}"
            ),
            "$orderby": "activityDateTime desc",
        }

    def convert(self, item: dict[str, Any]) -> DeletedDeviceEvent:
        return DeletedDeviceEvent.from_graph(item)
