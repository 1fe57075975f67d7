"""
Report script entry points.

Usage:
    intune-device-report  [--max-records N] [--page-size N] [--top N] [--os NAME ...]
    intune-device-history [--max-records N] [--page-size N] [--top N] [--os NAME ...] [--days N]
    license-audit         [--max-records N] [--page-size N]

Every script also accepts --profile, --config, --tenant-id/--client-id/--cert-path,
--delegated, --output-dir and --verbose. Exit code is 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from .auth.authenticator import AuthenticationError, Authenticator
from .config import (
    AuthConfig,
    CertificateAuth,
    ConfigError,
    DelegatedAuth,
    ReportConfig,
)
from .graph.client import GraphClient
from .profiles import resolve_profile
from .rendering import RenderError
from .reports import run_device_report, run_history_report, run_license_audit
from .safety.guardian import ReadOnlyGuard, SafetyViolation
from .sources import SourceError

logger = logging.getLogger("tenant_reports.cli")

ReportRunner = Callable[[GraphClient, ReportConfig], Awaitable[Path]]


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def base_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("--max-records", type=positive_int, help="Stop after this many records")
    parser.add_argument("--page-size", type=positive_int, help="Records per Graph page (max 999)")

    tenant = parser.add_argument_group("tenant")
    tenant.add_argument("--profile", "-p", help="Tenant profile name (see 'python -m tenant_reports profile list')")
    tenant.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    tenant.add_argument("--tenant-id", help="Tenant ID (overrides profile)")
    tenant.add_argument("--client-id", help="Client ID (overrides profile)")
    tenant.add_argument("--cert-path", type=Path, help="Path to base64-encoded certificate file")
    tenant.add_argument("--delegated", action="store_true", help="Use device code sign-in")
    tenant.add_argument("--tenant-name", help="Display name for the tenant on the dashboard")

    parser.add_argument("--output-dir", "-o", type=Path, help="Directory for the workbook")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress at INFO level")
    return parser


def device_parser(prog: str, description: str, history: bool = False) -> argparse.ArgumentParser:
    parser = base_parser(prog, description)
    parser.add_argument("--top", type=positive_int, help="Rows per dashboard table before folding into 'Other'")
    parser.add_argument("--os", nargs="+", metavar="NAME", help="Only fetch devices with these operating systems")
    if history:
        parser.add_argument("--days", type=positive_int, help="History window in days (default 30)")
    return parser


def build_config(args: argparse.Namespace) -> ReportConfig:
    """Build report configuration from a config file, a profile and CLI overrides."""
    if args.config:
        if not args.config.exists():
            raise ConfigError(f"Config file not found: {args.config}")
        config = ReportConfig.from_file(args.config)
    else:
        config = ReportConfig()

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            raise ConfigError(f"Profile '{args.profile}' not found")
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    if profile:
        config.auth = profile.to_auth_config()
        config.tenant_name = config.tenant_name or profile.tenant_display_name

    if args.tenant_id or args.client_id:
        if not (args.tenant_id and args.client_id):
            raise ConfigError("--tenant-id and --client-id must be given together")
        config.auth = AuthConfig(
            mode="certificate",
            certificate=CertificateAuth(
                tenant_id=args.tenant_id,
                client_id=args.client_id,
                certificate_path=str(args.cert_path or "./base64.txt"),
            ),
        )
    elif args.cert_path and config.auth.certificate:
        config.auth.certificate.certificate_path = str(args.cert_path)

    if args.delegated:
        source = config.auth.certificate or config.auth.delegated
        if not source:
            raise ConfigError("--delegated needs a tenant (profile, config or --tenant-id/--client-id)")
        config.auth = AuthConfig(
            mode="delegated",
            delegated=config.auth.delegated or DelegatedAuth(source.tenant_id, source.client_id),
        )

    if not (config.auth.certificate or config.auth.delegated):
        raise ConfigError(
            "No tenant credentials found. Use --profile <name>, "
            "--tenant-id X --client-id Y, or --config config.json"
        )

    if args.max_records:
        config.fetch.max_records = args.max_records
    if args.page_size:
        config.fetch.page_size = args.page_size
    if getattr(args, "top", None):
        config.devices.top_n = args.top
    if getattr(args, "os", None):
        config.devices.os_filter = list(args.os)
    if getattr(args, "days", None):
        config.devices.history_days = args.days
    if args.output_dir:
        config.output.base_dir = str(args.output_dir)
    if args.tenant_name:
        config.tenant_name = args.tenant_name
    config.verbose = config.verbose or args.verbose
    config.validate()
    return config


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)


async def execute(config: ReportConfig, runner: ReportRunner) -> Path:
    """Authenticate, open a read-only Graph client and run one report."""
    print("\n🔐 Authenticating...")
    token = Authenticator(config.auth).acquire_token()
    print("✅ Authentication successful.")

    guardian = ReadOnlyGuard()
    async with GraphClient(access_token=token, guardian=guardian) as client:
        print("\n📥 Fetching from Microsoft Graph...")
        path = await runner(client, config)
        logger.info(f"Graph client: {client.get_stats()}")
    return path


def run_report(
    parser: argparse.ArgumentParser,
    runner: ReportRunner,
    title: str,
    argv: Optional[Sequence[str]] = None,
) -> int:
    args = parser.parse_args(argv)

    print("=" * 70)
    print(f" {title}")
    print(" Mode: READ-ONLY — no tenant modifications will be made")
    print("=" * 70)

    try:
        config = build_config(args)
        configure_logging(config.verbose)
        print(f"\n📋 Run ID:  {config.output.run_id}")
        print(f"📂 Output:  {config.output.output_dir.resolve()}")
        print(f"🏢 Tenant:  {config.tenant_name or 'Unknown Tenant'}")
        path = asyncio.run(execute(config, runner))
    except ConfigError as e:
        print(f"\n❌ Configuration error: {e}")
        return 1
    except AuthenticationError as e:
        print(f"\n❌ Authentication failed: {e}")
        print("   Required Graph permissions:")
        for permission, why in Authenticator.list_required_permissions().items():
            print(f"     • {permission}: {why}")
        return 1
    except SourceError as e:
        print(f"\n❌ No data: {e}")
        return 1
    except (RenderError, SafetyViolation) as e:
        print(f"\n❌ {e}")
        return 1

    print(f"\n📊 Workbook:  {path.resolve()}\n")
    return 0


def device_report_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = device_parser("intune-device-report", "Intune device compliance workbook")
    return run_report(parser, run_device_report, "Intune Device Compliance Report", argv)


def device_history_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = device_parser(
        "intune-device-history",
        "Intune device compliance workbook with enrollment and deletion history",
        history=True,
    )
    return run_report(parser, run_history_report, "Intune Device History Report", argv)


def license_audit_main(argv: Optional[Sequence[str]] = None) -> int:
    parser = base_parser("license-audit", "Audit user licenses for overprovisioning")
    return run_report(parser, run_license_audit, "License Overprovisioning Audit", argv)


def _exit(main: Callable[[], int]) -> Callable[[], None]:
    def entry():
        sys.exit(main())
    return entry


device_report = _exit(device_report_main)
device_history = _exit(device_history_main)
license_audit = _exit(license_audit_main)
