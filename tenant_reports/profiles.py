"""
Tenant profiles — named tenant credentials shared by every report script.

Profiles are stored in:
    ~/.tenant_reports/profiles.json   (override the directory with TENANT_REPORTS_HOME)

Admins reporting on several tenants pick one with `--profile <name>`; without
it the default profile is used.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from .config import AuthConfig, CertificateAuth, ConfigError, DelegatedAuth

logger = logging.getLogger("tenant_reports.profiles")


def default_profiles_path() -> Path:
    home = os.environ.get("TENANT_REPORTS_HOME")
    base = Path(home) if home else Path.home() / ".tenant_reports"
    return base / "profiles.json"


@dataclass
class TenantProfile:
    """A single named tenant profile."""
    name: str
    tenant_id: str
    client_id: str
    cert_path: str = "./base64.txt"    # Base64-encoded PFX for app-only auth
    tenant_display_name: str = ""      # Shown on report dashboards
    delegated: bool = False            # Device code sign-in instead of certificate

    def resolve_cert_path(self) -> str:
        """Absolute cert path, resolving ~ and relative paths."""
        p = Path(self.cert_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)

    def to_auth_config(self) -> AuthConfig:
        if self.delegated:
            return AuthConfig(
                mode="delegated",
                delegated=DelegatedAuth(tenant_id=self.tenant_id, client_id=self.client_id),
            )
        return AuthConfig(
            mode="certificate",
            certificate=CertificateAuth(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                certificate_path=self.resolve_cert_path(),
            ),
        )


@dataclass
class ProfileStore:
    """The collection of tenant profiles backed by one JSON file."""
    path: Path = field(default_factory=default_profiles_path)
    profiles: dict[str, TenantProfile] = field(default_factory=dict)
    default_profile: str = ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ProfileStore":
        """Load profiles from disk; a missing file is an empty store."""
        store = cls(path=Path(path) if path else default_profiles_path())
        if not store.path.exists():
            return store
        try:
            data = json.loads(store.path.read_text(encoding="utf-8"))
            store.default_profile = data.get("default_profile", "")
            for name, pdata in data.get("profiles", {}).items():
                store.profiles[name] = TenantProfile(
                    name=name,
                    tenant_id=pdata["tenant_id"],
                    client_id=pdata["client_id"],
                    cert_path=pdata.get("cert_path", "./base64.txt"),
                    tenant_display_name=pdata.get("tenant_display_name", ""),
                    delegated=bool(pdata.get("delegated", False)),
                )
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ConfigError(f"Failed to parse {store.path}: {e}") from e
        return store

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {
                name: {k: v for k, v in asdict(p).items() if k != "name"}
                for name, p in self.profiles.items()
            },
        }
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        logger.debug(f"Saved {len(self.profiles)} profiles to {self.path}")

    def add(self, profile: TenantProfile, set_default: bool = False) -> None:
        """Add or overwrite a profile."""
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        """Remove a profile by name. Returns True if it existed."""
        if name not in self.profiles:
            return False
        del self.profiles[name]
        if self.default_profile == name:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[TenantProfile]:
        """Case-insensitive lookup."""
        key = name.lower()
        return next((p for n, p in self.profiles.items() if n.lower() == key), None)

    def get_default(self) -> Optional[TenantProfile]:
        if self.default_profile in self.profiles:
            return self.profiles[self.default_profile]
        return next(iter(self.profiles.values()), None)

    def set_default(self, name: str) -> bool:
        if name not in self.profiles:
            return False
        self.default_profile = name
        self.save()
        return True

    def list_profiles(self) -> list[TenantProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.name)


def resolve_profile(
    profile_name: Optional[str] = None,
    path: Optional[Path] = None,
) -> Optional[TenantProfile]:
    """Named profile, or the default one when no name is given."""
    store = ProfileStore.load(path)
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
