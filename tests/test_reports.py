import asyncio

import pytest
from openpyxl import load_workbook

from tenant_reports.aggregation import RuleTable, audit_licenses, summarize_devices, summarize_history
from tenant_reports.config import TRACKED_SKUS, LicenseAuditConfig
from tenant_reports.rendering import render
from tenant_reports.reports import (
    DeviceReportData,
    LicenseReportData,
    history_sections,
    license_sections,
    run_device_report,
    run_history_report,
    run_license_audit,
)
from tenant_reports.sources import PartialDataWarning, SourceError

from .conftest import E5, F3, M365_E3, NOW, O365_E3, FakeGraph, graph_device, graph_error

DEVICE_SHEETS = [
    "Dashboard", "All Devices", "Noncompliant", "Compliant",
    "Windows", "iOS", "macOS", "Android",
    "Android Fully Managed", "Android Dedicated", "Android Corporate WP", "Android Other",
    "Stale Devices", "Duplicate Serials",
]

DEVICES = [
    graph_device(id="1", serialNumber="SN1"),
    graph_device(id="2", serialNumber="SN1", complianceState="noncompliant",
                 lastSyncDateTime="2024-04-01T00:00:00Z"),
    graph_device(id="3", serialNumber="SN2", operatingSystem="Android",
                 deviceEnrollmentType="androidEnterpriseFullyManaged"),
    graph_device(id="4", serialNumber="SN3", operatingSystem="iOS",
                 enrolledDateTime="2024-06-25T09:00:00Z"),
]


def data_rows(wb, sheet):
    return list(wb[sheet].iter_rows(min_row=2, values_only=True))


def test_device_report(report_config):
    graph = FakeGraph({"deviceManagement/managedDevices": DEVICES})
    path = asyncio.run(run_device_report(graph, report_config, now=NOW))

    assert path.name == "DeviceCompliance_20240630_120000_abcdef12.xlsx"
    wb = load_workbook(path)
    assert wb.sheetnames == DEVICE_SHEETS
    assert len(data_rows(wb, "All Devices")) == 4
    assert [row[0] for row in data_rows(wb, "Noncompliant")] == ["PC-001"]
    assert len(data_rows(wb, "Android Fully Managed")) == 1
    assert data_rows(wb, "macOS") == [("N/A",) * wb["macOS"].max_column]
    assert [row[0] for row in data_rows(wb, "Duplicate Serials")] == ["SN1", "SN1"]
    assert len(data_rows(wb, "Stale Devices")) == 1


def test_device_report_passes_os_filter(report_config):
    report_config.devices.os_filter = ["Windows"]
    graph = FakeGraph({"deviceManagement/managedDevices": DEVICES[:1]})
    asyncio.run(run_device_report(graph, report_config, now=NOW))
    _, params = graph.calls[0]
    assert params["$filter"] == "operatingSystem eq 'Windows'"


def test_empty_source_writes_nothing(report_config):
    graph = FakeGraph({"deviceManagement/managedDevices": []})
    with pytest.raises(SourceError):
        asyncio.run(run_device_report(graph, report_config, now=NOW))
    assert not report_config.output.output_dir.exists()


def test_truncation_is_reported_on_dashboard(report_config):
    report_config.fetch.max_records = 2
    graph = FakeGraph({"deviceManagement/managedDevices": DEVICES})
    with pytest.warns(PartialDataWarning):
        path = asyncio.run(run_device_report(graph, report_config, now=NOW))
    dashboard = {row[0]: row[1] for row in load_workbook(path)["Dashboard"].iter_rows(values_only=True)}
    assert dashboard["Total devices"] == 2
    assert "truncated" in dashboard["Data warnings"]


def test_zero_records_render_every_sheet(tmp_path):
    data = DeviceReportData(
        tenant_name="Contoso",
        generated=NOW,
        records=(),
        summary=summarize_devices((), NOW),
        top_n=10,
        history=summarize_history((), (), NOW, 30),
    )
    path = render(tmp_path / "empty.xlsx", history_sections(data))
    wb = load_workbook(path)
    assert wb.sheetnames[:2] == ["Dashboard", "History"]
    assert wb.sheetnames[-2:] == ["Recent Enrollments", "Deleted Devices"]
    for name in wb.sheetnames[2:]:
        rows = data_rows(wb, name)
        assert len(rows) == 1
        assert set(rows[0]) == {"N/A"}



def test_zero_users_render_every_license_sheet(tmp_path):
    rules = RuleTable.from_config(LicenseAuditConfig())
    data = LicenseReportData(
        tenant_name="Contoso",
        generated=NOW,
        audit=audit_licenses([], TRACKED_SKUS, rules),
        rule_table=rules,
        tracked_skus=TRACKED_SKUS,
    )
    path = render(tmp_path / "empty-licenses.xlsx", license_sections(data))
    wb = load_workbook(path)
    assert wb.sheetnames == ["Dashboard", "Violations", "Multiple premium", "F3 conflict", "Disabled Licensed Users"]
    for name in wb.sheetnames[1:]:
        rows = data_rows(wb, name)
        assert len(rows) == 1
        assert set(rows[0]) == {"N/A"}


def test_history_report_survives_failed_deletion_lookup(report_config):
    graph = FakeGraph({
        "deviceManagement/managedDevices": DEVICES,
        "deviceManagement/auditEvents": graph_error(403),
    })
    with pytest.warns(PartialDataWarning, match="Deleted device lookup failed"):
        path = asyncio.run(run_history_report(graph, report_config, now=NOW))

    assert path.name.startswith("DeviceHistory_")
    wb = load_workbook(path)
    history = {row[0]: row[1] for row in wb["History"].iter_rows(values_only=True)}
    assert history["Deletion audit lookup"] == "Failed"
    assert history["Devices enrolled"] == 1
    assert data_rows(wb, "Deleted Devices") == [("N/A",) * 5]
    assert [row[0] for row in data_rows(wb, "Recent Enrollments")] == ["PC-001"]


def test_history_report_lists_deletions(report_config):
    graph = FakeGraph({
        "deviceManagement/managedDevices": DEVICES,
        "deviceManagement/auditEvents": [{
            "activityDateTime": "2024-06-20T08:00:00Z",
            "activity": "Delete ManagedDevice",
            "activityResult": "Success",
            "actor": {"userPrincipalName": "admin@contoso.com"},
            "resources": [{"displayName": "PC-OLD"}],
        }],
    })
    path = asyncio.run(run_history_report(graph, report_config, now=NOW))
    rows = data_rows(load_workbook(path), "Deleted Devices")
    assert len(rows) == 1
    assert rows[0][1:3] == ("PC-OLD", "admin@contoso.com")


def test_license_audit_report(report_config):
    graph = FakeGraph({"users": [
        {"id": "1", "displayName": "Ann Both", "userPrincipalName": "ann@contoso.com", "accountEnabled": True,
         "assignedLicenses": [{"skuId": F3}, {"skuId": E5}, {"skuId": M365_E3}]},
        {"id": "2", "displayName": "Cal Allowed", "userPrincipalName": "cal@contoso.com", "accountEnabled": False,
         "assignedLicenses": [{"skuId": F3}, {"skuId": O365_E3}]},
    ]})
    path = asyncio.run(run_license_audit(graph, report_config, now=NOW))

    assert path.name == "LicenseAudit_20240630_120000_abcdef12.xlsx"
    wb = load_workbook(path)
    assert wb.sheetnames == ["Dashboard", "Violations", "Multiple premium", "F3 conflict", "Disabled Licensed Users"]
    violations = data_rows(wb, "Violations")
    assert len(violations) == 1
    assert violations[0][0] == "Ann Both"
    assert violations[0][4] == "Multiple premium, F3 conflict"
    assert violations[0][5] == 2
    assert data_rows(wb, "Disabled Licensed Users") == [
        ("Cal Allowed", "cal@contoso.com", "Microsoft 365 F3, Office 365 E3"),
    ]
