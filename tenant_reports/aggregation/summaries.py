"""
Report summaries — one pass over the fetched records into frozen per-report results.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Sequence

from ..models import (
    COMPLIANT,
    NONCOMPLIANT,
    DeletedDeviceEvent,
    DeviceRecord,
    DuplicateGroup,
    FrequencyTable,
    LicensedUser,
    Violation,
)
from .counting import (
    DEFAULT_AGE_BOUNDARIES,
    UNCATEGORIZED,
    UNKNOWN,
    UNKNOWN_MANUFACTURER,
    UNKNOWN_MODEL,
    UNKNOWN_OS,
    age_bucket,
    age_table,
    compliance_rate,
    count_by,
    elapsed_days,
    find_duplicates,
    freeze_counts,
    label_for,
)
from .license_rules import RuleTable, evaluate_license_rules, normalize_tracked

logger = logging.getLogger("tenant_reports.aggregation")


@dataclass(frozen=True)
class DeviceSummary:
    total: int
    compliant: int
    noncompliant: int
    other: int
    compliance_rate: float
    by_state: FrequencyTable
    by_os: FrequencyTable
    by_model: FrequencyTable
    by_manufacturer: FrequencyTable
    by_owner: FrequencyTable
    by_category: FrequencyTable
    by_enrollment_type: FrequencyTable
    sync_age: FrequencyTable
    never_synced: int
    stale: tuple[DeviceRecord, ...]
    duplicates: tuple[DuplicateGroup, ...]

    @property
    def duplicate_devices(self) -> int:
        return sum(g.size for g in self.duplicates)


def summarize_devices(
    records: Sequence[DeviceRecord],
    now: datetime,
    boundaries: Sequence[int] = DEFAULT_AGE_BOUNDARIES,
) -> DeviceSummary:
    """
    Build every device dashboard structure in a single pass.
    Stale devices are those in the oldest sync-age bucket.
    """
    state: Counter = Counter()
    os_counts: Counter = Counter()
    models: Counter = Counter()
    manufacturers: Counter = Counter()
    owners: Counter = Counter()
    categories: Counter = Counter()
    enrollment_types: Counter = Counter()
    ages = [0] * (len(boundaries) + 1)
    stale = []
    never_synced = 0

    for record in records:
        state[label_for(record.compliance_state, UNKNOWN)] += 1
        os_counts[label_for(record.operating_system, UNKNOWN_OS)] += 1
        models[label_for(record.model, UNKNOWN_MODEL)] += 1
        manufacturers[label_for(record.manufacturer, UNKNOWN_MANUFACTURER)] += 1
        owners[label_for(record.owner_type, UNKNOWN).capitalize()] += 1
        categories[label_for(record.category, UNCATEGORIZED)] += 1
        enrollment_types[label_for(record.enrollment_type, UNKNOWN)] += 1

        if record.last_sync is None:
            never_synced += 1
            continue
        bucket = age_bucket(elapsed_days(record.last_sync, now), boundaries)
        ages[bucket] += 1
        if bucket == len(boundaries):
            stale.append(record)

    compliant = state.get(COMPLIANT, 0)
    noncompliant = state.get(NONCOMPLIANT, 0)
    summary = DeviceSummary(
        total=len(records),
        compliant=compliant,
        noncompliant=noncompliant,
        other=len(records) - compliant - noncompliant,
        compliance_rate=compliance_rate(compliant, noncompliant),
        by_state=freeze_counts(state),
        by_os=freeze_counts(os_counts),
        by_model=freeze_counts(models),
        by_manufacturer=freeze_counts(manufacturers),
        by_owner=freeze_counts(owners),
        by_category=freeze_counts(categories),
        by_enrollment_type=freeze_counts(enrollment_types),
        sync_age=age_table(ages, boundaries),
        never_synced=never_synced,
        stale=tuple(sorted(stale, key=lambda r: r.last_sync)),
        duplicates=tuple(find_duplicates(records)),
    )
    logger.info(
        f"Summarized {summary.total} devices — {summary.compliance_rate}% compliant, "
        f"{len(summary.stale)} stale, {len(summary.duplicates)} duplicate serials"
    )
    return summary


@dataclass(frozen=True)
class EnrollmentHistory:
    days: int
    enrolled: tuple[DeviceRecord, ...]
    by_month: FrequencyTable
    by_os: FrequencyTable
    deleted: tuple[DeletedDeviceEvent, ...]
    deleted_by_actor: FrequencyTable


def summarize_history(
    records: Sequence[DeviceRecord],
    deleted: Sequence[DeletedDeviceEvent],
    now: datetime,
    days: int,
) -> EnrollmentHistory:
    """Devices enrolled within the last `days` days, plus the deletions seen in that window."""
    since = now - timedelta(days=days)
    recent = sorted(
        (r for r in records if r.enrolled is not None and r.enrolled >= since),
        key=lambda r: r.enrolled,
        reverse=True,
    )
    return EnrollmentHistory(
        days=days,
        enrolled=tuple(recent),
        by_month=count_by(recent, lambda r: r.enrolled.strftime("%Y-%m")),
        by_os=count_by(recent, lambda r: r.operating_system, UNKNOWN_OS),
        deleted=tuple(deleted),
        deleted_by_actor=count_by(deleted, lambda e: e.actor, UNKNOWN),
    )


@dataclass(frozen=True)
class LicenseAudit:
    users_scanned: int
    tracked_users: int
    violations: tuple[Violation, ...]
    by_rule: FrequencyTable
    by_license: FrequencyTable
    disabled_with_tracked: tuple[LicensedUser, ...]


def audit_licenses(
    users: Sequence[LicensedUser],
    tracked_skus: Mapping[str, str],
    rule_table: RuleTable,
) -> LicenseAudit:
    """Evaluate every user once and tally rule and license counts."""
    tracked = normalize_tracked(tracked_skus)
    tracked_ids = frozenset(tracked)
    violations = []
    rule_counts: Counter = Counter()
    license_counts: Counter = Counter()
    disabled = []
    tracked_users = 0

    for user in users:
        matched = user.sku_ids & tracked_ids
        if not matched:
            continue
        tracked_users += 1
        for sku in sorted(matched):
            license_counts[tracked[sku]] += 1
        if not user.account_enabled:
            disabled.append(user)

        violation = evaluate_license_rules(user, tracked, rule_table)
        if violation:
            violations.append(violation)
            rule_counts.update(violation.rules)

    violations.sort(key=lambda v: (-v.count, (v.user.display_name or "").lower()))
    logger.info(
        f"Audited {len(users)} users — {tracked_users} hold tracked licenses, "
        f"{len(violations)} in violation"
    )
    return LicenseAudit(
        users_scanned=len(users),
        tracked_users=tracked_users,
        violations=tuple(violations),
        by_rule=freeze_counts(rule_counts),
        by_license=freeze_counts(license_counts),
        disabled_with_tracked=tuple(disabled),
    )
