"""License overprovisioning audit. Same as `license-audit`."""

import sys

from tenant_reports.cli import license_audit_main

if __name__ == "__main__":
    sys.exit(license_audit_main())
