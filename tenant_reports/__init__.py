"""
Tenant Reports
==============
Read-only Intune and Entra reporting scripts: device compliance and history
workbooks, a license overprovisioning audit, and a desktop launcher for them.

WARNING: These tools operate in STRICT READ-ONLY mode.
         No write operations will be performed against the tenant.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
