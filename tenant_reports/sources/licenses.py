"""
Licensed user source — directory users with at least one assigned license.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import LicensedUser
from .base import RecordSource

logger = logging.getLogger("tenant_reports.sources.licenses")


class LicensedUserSource(RecordSource[LicensedUser]):
    name = "licensed_users"
    endpoint = "users"

    def build_params(self) -> dict[str, Any]:
        # $count on assignedLicenses is an advanced query (ConsistencyLevel: eventual)
        return {
            "$select": "id,displayName,userPrincipalName,accountEnabled,assignedLicenses",
            "$filter": "assignedLicenses/$count ne 0",
            "$count": "true",
        }

    def convert(self, item: dict[str, Any]) -> LicensedUser:
        return LicensedUser.from_graph(item)
