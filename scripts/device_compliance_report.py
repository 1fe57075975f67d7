"""Intune device compliance workbook. Same as `intune-device-report`."""

import sys

from tenant_reports.cli import device_report_main

if __name__ == "__main__":
    sys.exit(device_report_main())
