"""Report pipelines — fetch, summarize and render one workbook per run."""

from .devices import (
    DeviceReportData,
    device_sections,
    history_sections,
    run_device_report,
    run_history_report,
)
from .licenses import LicenseReportData, build_license_data, license_sections, run_license_audit

__all__ = [
    "DeviceReportData",
    "device_sections",
    "history_sections",
    "run_device_report",
    "run_history_report",
    "LicenseReportData",
    "build_license_data",
    "license_sections",
    "run_license_audit",
]
