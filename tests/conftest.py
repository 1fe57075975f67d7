from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import pytest

from tenant_reports.config import ReportConfig
from tenant_reports.graph.client import GraphAPIError, GraphClient
from tenant_reports.models import DeviceRecord, LicensedUser

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

E5 = "06ebc4ee-1bb5-47dd-8120-11324bc54e06"
M365_E3 = "05e9a617-0261-4cee-bb44-138d3ef5d965"
O365_E3 = "6fd2c87f-b296-42f0-b197-1e91e994b900"
F3 = "66b55226-6b4f-492c-910c-a3b7a3c9d993"
UNTRACKED = "18181a46-0d4e-45cd-891e-60aabd171b4e"


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def make_device(**overrides) -> DeviceRecord:
    values = dict(
        id="dev-1",
        device_name="PC-001",
        compliance_state="compliant",
        serial_number="SN-001",
        model="Latitude 5440",
        manufacturer="Dell Inc.",
        operating_system="Windows",
        os_version="10.0.22631",
        last_sync=days_ago(1),
        enrolled=days_ago(100),
        owner_type="corporate",
        category="Office",
        enrollment_type="windowsAzureADJoin",
        user_principal_name="alex@contoso.com",
    )
    values.update(overrides)
    return DeviceRecord(**values)


def make_user(*skus: str, name: str = "Alex Wilber", enabled: bool = True) -> LicensedUser:
    return LicensedUser(
        id=name.lower().replace(" ", "-"),
        display_name=name,
        user_principal_name=name.lower().replace(" ", ".") + "@contoso.com",
        account_enabled=enabled,
        sku_ids=frozenset(s.lower() for s in skus),
    )


def graph_device(**overrides) -> dict[str, Any]:
    """A managedDevice item as Graph returns it."""
    item = {
        "id": "dev-1",
        "deviceName": "PC-001",
        "complianceState": "compliant",
        "serialNumber": "SN-001",
        "model": "Latitude 5440",
        "manufacturer": "Dell Inc.",
        "operatingSystem": "Windows",
        "osVersion": "10.0.22631",
        "lastSyncDateTime": "2024-06-29T08:15:00Z",
        "enrolledDateTime": "2024-03-01T10:00:00.1234567Z",
        "managedDeviceOwnerType": "company",
        "deviceCategoryDisplayName": "Office",
        "deviceEnrollmentType": "windowsAzureADJoin",
        "userPrincipalName": "alex@contoso.com",
    }
    item.update(overrides)
    return item


class FakeGraph:
    """
    Stands in for GraphClient in pipeline tests.
    `responses` maps an endpoint to its items, or to an exception to raise.
    """

    def __init__(self, responses: dict[str, Any]):
        self.responses = responses
        self.calls: list[tuple[str, dict]] = []

    async def get_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
        page_size: int = 999,
        limit: Optional[int] = None,
    ):
        self.calls.append((endpoint, dict(params or {})))
        response = self.responses.get(endpoint, [])
        if isinstance(response, Exception):
            raise response
        for index, item in enumerate(response):
            if limit is not None and index >= limit:
                return
            yield item


def graph_error(status: int = 403, endpoint: str = "deviceManagement/auditEvents") -> GraphAPIError:
    return GraphAPIError(status, "Insufficient privileges", endpoint)


def run_with_transport(handler, scenario):
    """Run `scenario(graph)` against a GraphClient backed by an httpx mock transport."""
    async def main():
        async with GraphClient("test-token", transport=httpx.MockTransport(handler)) as graph:
            return await scenario(graph)
    return asyncio.run(main())


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def report_config(tmp_path) -> ReportConfig:
    config = ReportConfig()
    config.output.base_dir = str(tmp_path / "out")
    config.output.run_id = "20240630_120000_abcdef12"
    config.tenant_name = "Contoso"
    return config


@pytest.fixture
def profiles_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("TENANT_REPORTS_HOME", str(home))
    return home
