"""
Device compliance and device history reports.

Both fetch the managed device inventory once and render the same dashboard and
data sheets; the history report adds recent enrollments and audit-log deletions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..aggregation import (
    DeviceSummary,
    EnrollmentHistory,
    flatten_duplicates,
    summarize_devices,
    summarize_history,
)
from ..config import ReportConfig
from ..graph.client import GraphClient
from ..models import (
    COMPLIANT,
    DELETED_DEVICE_COLUMNS,
    DEVICE_COLUMNS,
    NONCOMPLIANT,
    DeletedDeviceEvent,
    DeviceRecord,
)
from ..rendering import DataSheet, Section, SummarySheet, TableBlock, render, report_path
from ..sources import DeletedDeviceSource, ManagedDeviceSource, SourceError, warn_partial

logger = logging.getLogger("tenant_reports.reports.devices")

DUPLICATE_COLUMNS = ["Duplicate Group"] + DEVICE_COLUMNS

# Operating system families, matched on a case-insensitive prefix
OS_FAMILIES = [
    ("Windows", ("windows",)),
    ("iOS", ("ios", "ipados")),
    ("macOS", ("macos", "mac os")),
    ("Android", ("android",)),
]

# Android Enterprise programs, keyed by Graph deviceEnrollmentType
ANDROID_PROGRAMS = [
    ("Android Fully Managed", "androidenterprisefullymanaged"),
    ("Android Dedicated", "androidenterprisededicateddevice"),
    ("Android Corporate WP", "androidenterprisecorporateworkprofile"),
]


@dataclass
class DeviceReportData:
    """Everything a device workbook is rendered from."""
    tenant_name: str
    generated: datetime
    records: Sequence[DeviceRecord]
    summary: DeviceSummary
    top_n: int
    warnings: list[str] = field(default_factory=list)
    history: Optional[EnrollmentHistory] = None
    deletions_available: bool = True


def os_family(record: DeviceRecord) -> Optional[str]:
    name = (record.operating_system or "").lower()
    for family, prefixes in OS_FAMILIES:
        if name.startswith(prefixes):
            return family
    return None


def android_program(record: DeviceRecord) -> Optional[str]:
    if os_family(record) != "Android":
        return None
    enrollment = (record.enrollment_type or "").lower()
    for label, enrollment_type in ANDROID_PROGRAMS:
        if enrollment == enrollment_type:
            return label
    return "Android Other"


def _device_sheet(name: str, records: Sequence[DeviceRecord], predicate: Callable[[DeviceRecord], bool]) -> DataSheet:
    return DataSheet(name, DEVICE_COLUMNS, [r.to_row() for r in records if predicate(r)])


def _duplicate_rows(summary: DeviceSummary) -> list[dict]:
    return [
        {"Duplicate Group": record.serial_number, **record.to_row()}
        for record in flatten_duplicates(summary.duplicates)
    ]


def device_dashboard(data: DeviceReportData, title: str) -> SummarySheet:
    s = data.summary
    top = data.top_n
    kpis = [
        ("Tenant", data.tenant_name),
        ("Generated (UTC)", data.generated),
        ("Total devices", s.total),
        ("Compliant", s.compliant),
        ("Noncompliant", s.noncompliant),
        ("Other compliance state", s.other),
        ("Compliance rate (%)", s.compliance_rate),
        ("Never synced", s.never_synced),
        ("Stale devices", len(s.stale)),
        ("Duplicate serial numbers", len(s.duplicates)),
        ("Devices sharing a serial", s.duplicate_devices),
    ]
    if data.warnings:
        kpis.append(("Data warnings", "; ".join(data.warnings)))

    return SummarySheet(
        name="Dashboard",
        title=title,
        kpis=kpis,
        tables=[
            TableBlock("Compliance State", s.by_state, headers=("State", "Devices")),
            TableBlock("Operating System", s.by_os, top, ("OS", "Devices")),
            TableBlock("Last Sync", s.sync_age, headers=("Age", "Devices")),
            TableBlock("Model", s.by_model, top, ("Model", "Devices")),
            TableBlock("Manufacturer", s.by_manufacturer, top, ("Manufacturer", "Devices")),
            TableBlock("Ownership", s.by_owner, headers=("Owner", "Devices")),
            TableBlock("Category", s.by_category, top, ("Category", "Devices")),
            TableBlock("Enrollment Type", s.by_enrollment_type, top, ("Type", "Devices")),
        ],
    )


def device_sections(data: DeviceReportData, title: str = "Intune Device Compliance") -> list[Section]:
    """Dashboard plus the full dump and every filtered device sheet."""
    records = data.records
    sections: list[Section] = [
        device_dashboard(data, title),
        _device_sheet("All Devices", records, lambda r: True),
        _device_sheet("Noncompliant", records, lambda r: r.compliance_state == NONCOMPLIANT),
        _device_sheet("Compliant", records, lambda r: r.compliance_state == COMPLIANT),
    ]
    for family, _ in OS_FAMILIES:
        sections.append(_device_sheet(family, records, lambda r, f=family: os_family(r) == f))
    for label in [label for label, _ in ANDROID_PROGRAMS] + ["Android Other"]:
        sections.append(_device_sheet(label, records, lambda r, p=label: android_program(r) == p))

    stale = DataSheet("Stale Devices", DEVICE_COLUMNS, [r.to_row() for r in data.summary.stale])
    sections.append(stale)
    sections.append(DataSheet("Duplicate Serials", DUPLICATE_COLUMNS, _duplicate_rows(data.summary)))
    return sections


def history_sections(data: DeviceReportData) -> list[Section]:
    """Device sections followed by the enrollment and deletion history sheets."""
    history = data.history
    if history is None:
        raise ValueError("history_sections requires enrollment history")

    sections = device_sections(data, title="Intune Device Compliance & History")
    sections.insert(1, SummarySheet(
        name="History",
        title=f"Enrollment & Deletion History — last {history.days} days",
        kpis=[
            ("Window (days)", history.days),
            ("Devices enrolled", len(history.enrolled)),
            ("Devices deleted", len(history.deleted) if data.deletions_available else "N/A"),
            ("Deletion audit lookup", "OK" if data.deletions_available else "Failed"),
        ],
        tables=[
            TableBlock("Enrollments by Month", history.by_month, headers=("Month", "Devices")),
            TableBlock("Enrollments by OS", history.by_os, data.top_n, ("OS", "Devices")),
            TableBlock("Deletions by Actor", history.deleted_by_actor, data.top_n, ("Deleted By", "Devices")),
        ],
    ))
    sections.append(DataSheet("Recent Enrollments", DEVICE_COLUMNS, [r.to_row() for r in history.enrolled]))
    sections.append(DataSheet("Deleted Devices", DELETED_DEVICE_COLUMNS, [e.to_row() for e in history.deleted]))
    return sections


async def fetch_devices(graph: GraphClient, config: ReportConfig):
    source = ManagedDeviceSource(graph)
    return await source.fetch(
        filters=config.devices.os_filter or None,
        page_size=config.fetch.page_size,
        max_records=config.fetch.max_records,
    )


async def run_device_report(
    graph: GraphClient,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> Path:
    """Fetch → summarize → render the device compliance workbook. Returns the file path."""
    now = now or datetime.now(timezone.utc)
    fetched = await fetch_devices(graph, config)
    print(f"  ✅ {len(fetched)} devices fetched ({fetched.duration_seconds}s)")

    data = DeviceReportData(
        tenant_name=config.tenant_name or "Unknown Tenant",
        generated=now,
        records=fetched.records,
        summary=summarize_devices(fetched.records, now, config.devices.age_boundaries),
        top_n=config.devices.top_n,
        warnings=list(fetched.warnings),
    )
    path = report_path(config.output.output_dir, "DeviceCompliance", config.output.run_id)
    return render(path, device_sections(data))


async def fetch_deletions(graph: GraphClient, config: ReportConfig, now: datetime):
    """Deleted devices from the audit log; None (with a warning) when the lookup fails."""
    source = DeletedDeviceSource(graph, days=config.devices.history_days, now=now)
    try:
        return await source.fetch(
            page_size=config.fetch.page_size,
            max_records=config.fetch.max_records,
        )
    except SourceError as e:
        warn_partial(f"Deleted device lookup failed, continuing without it: {e}")
        return None


async def run_history_report(
    graph: GraphClient,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> Path:
    """Device workbook plus enrollment and deletion history."""
    now = now or datetime.now(timezone.utc)
    fetched = await fetch_devices(graph, config)
    print(f"  ✅ {len(fetched)} devices fetched ({fetched.duration_seconds}s)")

    warnings = list(fetched.warnings)
    deletions = await fetch_deletions(graph, config, now)
    deleted: Sequence[DeletedDeviceEvent] = ()
    if deletions is None:
        warnings.append("Deleted device audit lookup failed")
        print("  ⚠  Deleted device lookup failed — sheet will be empty")
    else:
        deleted = deletions.records
        warnings.extend(deletions.warnings)
        print(f"  ✅ {len(deletions)} deletions in the last {config.devices.history_days} days")

    data = DeviceReportData(
        tenant_name=config.tenant_name or "Unknown Tenant",
        generated=now,
        records=fetched.records,
        summary=summarize_devices(fetched.records, now, config.devices.age_boundaries),
        top_n=config.devices.top_n,
        warnings=warnings,
        history=summarize_history(fetched.records, deleted, now, config.devices.history_days),
        deletions_available=deletions is not None,
    )
    path = report_path(config.output.output_dir, "DeviceHistory", config.output.run_id)
    return render(path, history_sections(data))
