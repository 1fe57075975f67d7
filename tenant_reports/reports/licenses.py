"""
License audit report — users whose tracked licenses break an overprovisioning rule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional, Sequence

from ..aggregation import LicenseAudit, RuleTable, audit_licenses
from ..config import ReportConfig
from ..graph.client import GraphClient
from ..models import VIOLATION_COLUMNS, LicensedUser
from ..rendering import DataSheet, Section, SummarySheet, TableBlock, render, report_path
from ..sources import LicensedUserSource

logger = logging.getLogger("tenant_reports.reports.licenses")

DISABLED_USER_COLUMNS = ["Display Name", "User Principal Name", "Tracked Licenses"]


@dataclass
class LicenseReportData:
    tenant_name: str
    generated: datetime
    audit: LicenseAudit
    rule_table: RuleTable
    tracked_skus: Mapping[str, str]
    warnings: list[str] = field(default_factory=list)


def _tracked_names(user: LicensedUser, tracked_skus: Mapping[str, str]) -> str:
    tracked = {sku.lower(): name for sku, name in tracked_skus.items()}
    return ", ".join(sorted(tracked[s] for s in user.sku_ids if s in tracked))


def license_sections(data: LicenseReportData) -> list[Section]:
    """Dashboard, all violations, one sheet per rule and disabled licensed users."""
    audit = data.audit
    rule_counts = {entry.label: entry.count for entry in audit.by_rule}

    kpis = [
        ("Tenant", data.tenant_name),
        ("Generated (UTC)", data.generated),
        ("Licensed users scanned", audit.users_scanned),
        ("Users with tracked licenses", audit.tracked_users),
        ("Users in violation", len(audit.violations)),
    ]
    kpis += [(f"Rule: {rule.name}", rule_counts.get(rule.name, 0)) for rule in data.rule_table.rules]
    kpis.append(("Disabled users with tracked licenses", len(audit.disabled_with_tracked)))
    if data.warnings:
        kpis.append(("Data warnings", "; ".join(data.warnings)))

    sections: list[Section] = [
        SummarySheet(
            name="Dashboard",
            title="License Overprovisioning Audit",
            kpis=kpis,
            tables=[
                TableBlock("Violations by Rule", audit.by_rule, headers=("Rule", "Users")),
                TableBlock("Tracked Licenses", audit.by_license, headers=("License", "Users")),
            ],
        ),
        DataSheet("Violations", VIOLATION_COLUMNS, [v.to_row() for v in audit.violations]),
    ]
    for rule in data.rule_table.rules:
        rows = [v.to_row() for v in audit.violations if rule.name in v.rules]
        sections.append(DataSheet(rule.name, VIOLATION_COLUMNS, rows))

    sections.append(DataSheet(
        "Disabled Licensed Users",
        DISABLED_USER_COLUMNS,
        [
            {
                "Display Name": user.display_name,
                "User Principal Name": user.user_principal_name,
                "Tracked Licenses": _tracked_names(user, data.tracked_skus),
            }
            for user in audit.disabled_with_tracked
        ],
    ))
    return sections


def build_license_data(
    users: Sequence[LicensedUser],
    config: ReportConfig,
    now: datetime,
    warnings: Optional[list[str]] = None,
) -> LicenseReportData:
    rule_table = RuleTable.from_config(config.license_audit)
    tracked = config.license_audit.tracked_skus
    return LicenseReportData(
        tenant_name=config.tenant_name or "Unknown Tenant",
        generated=now,
        audit=audit_licenses(users, tracked, rule_table),
        rule_table=rule_table,
        tracked_skus=tracked,
        warnings=list(warnings or []),
    )


async def run_license_audit(
    graph: GraphClient,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> Path:
    """Fetch licensed users → evaluate rules → render the audit workbook."""
    now = now or datetime.now(timezone.utc)
    # Build the rule table first so a bad configuration fails before any request
    RuleTable.from_config(config.license_audit)

    fetched = await LicensedUserSource(graph).fetch(
        page_size=config.fetch.page_size,
        max_records=config.fetch.max_records,
    )
    print(f"  ✅ {len(fetched)} licensed users fetched ({fetched.duration_seconds}s)")

    data = build_license_data(fetched.records, config, now, fetched.warnings)
    print(f"  ✅ {len(data.audit.violations)} users in violation")
    path = report_path(config.output.output_dir, "LicenseAudit", config.output.run_id)
    return render(path, license_sections(data))
