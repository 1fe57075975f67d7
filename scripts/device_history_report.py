"""Intune device workbook with enrollment and deletion history. Same as `intune-device-history`."""

import sys

from tenant_reports.cli import device_history_main

if __name__ == "__main__":
    sys.exit(device_history_main())
