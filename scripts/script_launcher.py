"""Launcher window for the other scripts in this directory. Same as `report-launcher`."""

import sys

from tenant_reports.launcher.app import main

if __name__ == "__main__":
    sys.exit(main())
