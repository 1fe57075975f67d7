"""
Tenant Reports — profile management

Usage:
    python -m tenant_reports profile add <name> --tenant-id ... --client-id ...
    python -m tenant_reports profile list
    python -m tenant_reports profile remove <name>
    python -m tenant_reports profile set-default <name>

Reports themselves run through their own scripts:
    intune-device-report, intune-device-history, license-audit, report-launcher
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .config import ConfigError
from .profiles import ProfileStore, TenantProfile


def _profile_list(store: ProfileStore) -> int:
    profiles = store.list_profiles()
    if not profiles:
        print("No profiles configured. Add one with:\n")
        print("  python -m tenant_reports profile add <name> \\")
        print("    --tenant-id <GUID> --client-id <GUID> --cert-path ./base64.txt")
        return 0

    print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
    print(f"  {'─'*20} {'─'*38} {'─'*38} {'─'*12} {'─'*7}")
    for p in profiles:
        default_marker = "  ✓" if p.name == store.default_profile else ""
        display = p.tenant_display_name or ""
        name_col = f"{p.name}" + (f" ({display})" if display else "")
        auth = "device code" if p.delegated else "certificate"
        print(f"  {name_col:<20s} {p.tenant_id:<38s} {p.client_id:<38s} {auth:<12s}{default_marker}")
    print()
    return 0


def _profile_add(store: ProfileStore, args: argparse.Namespace) -> int:
    name = args.profile_name
    if store.get(name):
        print(f"  Profile '{name}' already exists. It will be overwritten.")

    profile = TenantProfile(
        name=name,
        tenant_id=args.tenant_id,
        client_id=args.client_id,
        cert_path=args.cert_path or "./base64.txt",
        tenant_display_name=args.display_name or "",
        delegated=args.delegated,
    )
    set_as_default = args.set_default or not store.profiles
    store.add(profile, set_default=set_as_default)
    print(f"  ✅ Profile '{name}' saved to {store.path}.")
    if set_as_default:
        print(f"  ✅ Set as default profile.")
    return 0


def _profile_remove(store: ProfileStore, args: argparse.Namespace) -> int:
    if store.remove(args.profile_name):
        print(f"  ✅ Profile '{args.profile_name}' removed.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


def _profile_set_default(store: ProfileStore, args: argparse.Namespace) -> int:
    if store.set_default(args.profile_name):
        print(f"  ✅ Default profile set to '{args.profile_name}'.")
        return 0
    print(f"  ❌ Profile '{args.profile_name}' not found.")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tenant_reports",
        description="Tenant Reports profile management (READ-ONLY tools)",
    )
    sub = parser.add_subparsers(dest="command")

    prof = sub.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof.add_subparsers(dest="profile_action")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for this tenant (e.g. contoso-prod)")
    add_p.add_argument("--tenant-id", required=True, help="Azure AD tenant ID")
    add_p.add_argument("--client-id", required=True, help="App registration client ID")
    add_p.add_argument("--cert-path", help="Path to base64-encoded certificate (default: ./base64.txt)")
    add_p.add_argument("--display-name", help="Friendly tenant name shown on report dashboards")
    add_p.add_argument("--delegated", action="store_true", help="Sign in with a device code instead of a certificate")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")

    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name", help="Name of the profile to remove")

    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name", help="Name of the profile to set as default")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "profile" or not args.profile_action:
        print("Usage: python -m tenant_reports profile {add|list|remove|set-default}")
        return 0

    try:
        store = ProfileStore.load()
    except ConfigError as e:
        print(f"  ❌ {e}")
        return 1

    if args.profile_action == "list":
        return _profile_list(store)
    elif args.profile_action == "add":
        return _profile_add(store, args)
    elif args.profile_action == "remove":
        return _profile_remove(store, args)
    elif args.profile_action == "set-default":
        return _profile_set_default(store, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
