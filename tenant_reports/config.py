"""
Configuration module for the tenant reporting tools.
Defines tunable parameters, Graph endpoints, license audit rules and output settings.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class ConfigError(Exception):
    """Raised when a configuration file holds invalid values."""
    pass


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty


@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "DeviceManagementManagedDevices.Read.All",
        "DeviceManagementApps.Read.All",
        "User.Read.All",
    ])


@dataclass
class AuthConfig:
    """Authentication configuration — supports both modes."""
    mode: str = "certificate"  # "certificate" or "delegated"
    certificate: Optional[CertificateAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_BETA_VERSION = "beta"

# Pagination
MAX_PAGE_SIZE = 999               # Graph maximum for $top
DEFAULT_MAX_RECORDS = 50000       # Hard cap on records per fetch

# Placeholder Graph returns for "never" timestamps
GRAPH_NULL_DATETIME = "0001-01-01T00:00:00Z"


def _check_count(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")


# ─── Fetch Settings ─────────────────────────────────────────────────────────

@dataclass
class FetchConfig:
    """Controls for record fetching."""
    page_size: int = MAX_PAGE_SIZE
    max_records: int = DEFAULT_MAX_RECORDS

    def validate(self):
        _check_count("page_size", self.page_size)
        _check_count("max_records", self.max_records)


# ─── Device Report Settings ─────────────────────────────────────────────────

@dataclass
class DeviceReportConfig:
    """Shaping parameters for the device compliance and history workbooks."""
    top_n: int = 10                       # Row budget per dashboard table
    os_filter: list[str] = field(default_factory=list)
    age_boundaries: list[int] = field(default_factory=lambda: [7, 14, 28])
    history_days: int = 30                # Window for enrollment/deletion history

    @property
    def stale_days(self) -> int:
        """Devices not synced for longer than the largest boundary are stale."""
        return max(self.age_boundaries)

    def validate(self):
        _check_count("top_n", self.top_n)
        _check_count("history_days", self.history_days)
        boundaries = self.age_boundaries
        if not isinstance(boundaries, list) or not boundaries:
            raise ConfigError(f"age_boundaries must be a non-empty list, got {boundaries!r}")
        for days in boundaries:
            _check_count("age_boundaries entry", days)
        if sorted(set(boundaries)) != boundaries:
            raise ConfigError(f"age_boundaries must be strictly ascending, got {boundaries}")
        if not isinstance(self.os_filter, list) or not all(isinstance(o, str) for o in self.os_filter):
            raise ConfigError(f"os_filter must be a list of names, got {self.os_filter!r}")


# ─── License Audit Settings ─────────────────────────────────────────────────

# Licenses the audit monitors, keyed by SKU id. All other SKUs are ignored.
TRACKED_SKUS = {
    "06ebc4ee-1bb5-47dd-8120-11324bc54e06": "Microsoft 365 E5",
    "05e9a617-0261-4cee-bb44-138d3ef5d965": "Microsoft 365 E3",
    "6fd2c87f-b296-42f0-b197-1e91e994b900": "Office 365 E3",
    "66b55226-6b4f-492c-910c-a3b7a3c9d993": "Microsoft 365 F3",
}

# Named SKU groups the rules refer to.
LICENSE_GROUPS = {
    "premium": [
        "06ebc4ee-1bb5-47dd-8120-11324bc54e06",
        "05e9a617-0261-4cee-bb44-138d3ef5d965",
        "6fd2c87f-b296-42f0-b197-1e91e994b900",
    ],
    "f3": [
        "66b55226-6b4f-492c-910c-a3b7a3c9d993",
    ],
    "f3_allowed": [
        "6fd2c87f-b296-42f0-b197-1e91e994b900",
    ],
}

# Ordered rules: every condition must hold for the rule to fire.
LICENSE_RULES = [
    {
        "name": "Multiple premium",
        "conditions": [{"group": "premium", "minimum": 2}],
    },
    {
        "name": "F3 conflict",
        "conditions": [
            {"group": "f3"},
            {"group": "premium", "excluding": ["f3_allowed"]},
        ],
    },
]


@dataclass
class LicenseAuditConfig:
    """Tracked SKUs, SKU groups and rule definitions for the license audit."""
    tracked_skus: dict[str, str] = field(default_factory=lambda: dict(TRACKED_SKUS))
    groups: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in LICENSE_GROUPS.items()}
    )
    rules: list[dict[str, Any]] = field(
        default_factory=lambda: json.loads(json.dumps(LICENSE_RULES))
    )


# ─── Output Configuration ───────────────────────────────────────────────────

def new_run_id() -> str:
    """Timestamp-qualified identifier used in output file names."""
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:8]


@dataclass
class OutputConfig:
    """Output directory and run identifier."""
    base_dir: str = ""
    run_id: str = ""

    def __post_init__(self):
        if not self.run_id:
            self.run_id = new_run_id()
        if not self.base_dir:
            self.base_dir = os.path.join(os.getcwd(), "tenant_reports_output")

    @property
    def output_dir(self) -> Path:
        return Path(self.base_dir)


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class ReportConfig:
    """Top-level configuration shared by all report scripts."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    devices: DeviceReportConfig = field(default_factory=DeviceReportConfig)
    license_audit: LicenseAuditConfig = field(default_factory=LicenseAuditConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    tenant_name: str = ""
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "ReportConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReportConfig":
        config = cls()
        try:
            config._load_auth(data.get("auth", {}))
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigError(f"Invalid auth configuration: {e!r}") from e
        for section, target in (
            ("fetch", config.fetch),
            ("devices", config.devices),
            ("license_audit", config.license_audit),
            ("output", config.output),
        ):
            values = data.get(section, {})
            if not isinstance(values, dict):
                raise ConfigError(f"Section '{section}' must be an object, got {values!r}")
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)
        config.tenant_name = data.get("tenant_name", "")
        config.verbose = data.get("verbose", False)
        config.validate()
        return config

    def _load_auth(self, auth_data: dict[str, Any]):
        if not auth_data:
            return
        self.auth.mode = auth_data.get("mode", "certificate")
        if "certificate" in auth_data:
            c = auth_data["certificate"]
            self.auth.certificate = CertificateAuth(
                tenant_id=c["tenant_id"],
                client_id=c["client_id"],
                certificate_path=c.get("certificate_path", "./base64.txt"),
                certificate_password=c.get("certificate_password", ""),
            )
        if "delegated" in auth_data:
            d = auth_data["delegated"]
            self.auth.delegated = DelegatedAuth(
                tenant_id=d["tenant_id"],
                client_id=d["client_id"],
            )
            if "scopes" in d:
                self.auth.delegated.scopes = list(d["scopes"])

    def validate(self):
        self.fetch.validate()
        self.devices.validate()


# ─── Required Graph API Permissions (Read-Only) ─────────────────────────────

REQUIRED_PERMISSIONS = {
    "DeviceManagementManagedDevices.Read.All": "Read managed device inventory",
    "DeviceManagementApps.Read.All": "Read Intune audit events",
    "User.Read.All": "Read users and their assigned licenses",
}
