from tenant_reports.aggregation import RuleTable, audit_licenses, summarize_devices, summarize_history
from tenant_reports.config import TRACKED_SKUS, LicenseAuditConfig
from tenant_reports.models import DeletedDeviceEvent

from .conftest import E5, F3, M365_E3, NOW, O365_E3, UNTRACKED, days_ago, make_device, make_user


def test_zero_devices():
    summary = summarize_devices([], NOW)
    assert summary.total == 0
    assert summary.compliance_rate == 0
    for table in (
        summary.by_state, summary.by_os, summary.by_model, summary.by_manufacturer,
        summary.by_owner, summary.by_category, summary.by_enrollment_type, summary.sync_age,
    ):
        assert table == ()
    assert summary.stale == ()
    assert summary.duplicates == ()


def test_device_summary_counts():
    records = [
        make_device(id="1", compliance_state="compliant", owner_type="corporate", last_sync=days_ago(2)),
        make_device(id="2", compliance_state="compliant", owner_type="personal", last_sync=days_ago(40)),
        make_device(id="3", compliance_state="noncompliant", owner_type="corporate", last_sync=days_ago(90)),
        make_device(id="4", compliance_state="ingraceperiod", owner_type="unknown", last_sync=None,
                    serial_number="SN-X", operating_system=None),
    ]
    summary = summarize_devices(records, NOW)

    assert (summary.total, summary.compliant, summary.noncompliant, summary.other) == (4, 2, 1, 1)
    assert summary.compliance_rate == 66.7
    assert sum(e.count for e in summary.by_os) == 4
    assert ("Unknown OS", 1) in [(e.label, e.count) for e in summary.by_os]
    assert [(e.label, e.count) for e in summary.by_owner] == [("Corporate", 2), ("Personal", 1), ("Unknown", 1)]
    assert summary.never_synced == 1
    assert sum(e.count for e in summary.sync_age) == 3
    # Stale devices, least recently synced first
    assert [r.id for r in summary.stale] == ["3", "2"]
    assert len(summary.duplicates) == 1
    assert summary.duplicate_devices == 3


def test_history_window():
    records = [
        make_device(id="new", enrolled=days_ago(3)),
        make_device(id="newer", enrolled=days_ago(1), operating_system="iOS"),
        make_device(id="old", enrolled=days_ago(45)),
        make_device(id="never", enrolled=None),
    ]
    deleted = [
        DeletedDeviceEvent(days_ago(2), "PC-9", "admin@contoso.com", "Delete ManagedDevice", "Success"),
        DeletedDeviceEvent(days_ago(5), "PC-8", None, "Delete ManagedDevice", "Success"),
    ]
    history = summarize_history(records, deleted, NOW, days=30)

    assert [r.id for r in history.enrolled] == ["newer", "new"]
    assert [(e.label, e.count) for e in history.by_month] == [("2024-06", 2)]
    assert {e.label for e in history.by_os} == {"Windows", "iOS"}
    assert [(e.label, e.count) for e in history.deleted_by_actor] == [("admin@contoso.com", 1), ("Unknown", 1)]


def test_history_with_nothing():
    history = summarize_history([], [], NOW, days=30)
    assert history.enrolled == ()
    assert history.by_month == ()
    assert history.deleted_by_actor == ()


def test_license_audit():
    users = [
        make_user(E5, O365_E3, name="Bea Premium"),
        make_user(F3, E5, M365_E3, name="Ann Both"),
        make_user(F3, O365_E3, name="Cal Allowed"),
        make_user(E5, name="Dee Single", enabled=False),
        make_user(UNTRACKED, name="Eve Untracked"),
    ]
    audit = audit_licenses(users, TRACKED_SKUS, RuleTable.from_config(LicenseAuditConfig()))

    assert audit.users_scanned == 5
    assert audit.tracked_users == 4
    # Most violations first, then by name
    assert [v.user.display_name for v in audit.violations] == ["Ann Both", "Bea Premium"]
    assert [(e.label, e.count) for e in audit.by_rule] == [("Multiple premium", 2), ("F3 conflict", 1)]
    assert dict((e.label, e.count) for e in audit.by_license) == {
        "Microsoft 365 E5": 3,
        "Office 365 E3": 2,
        "Microsoft 365 F3": 2,
        "Microsoft 365 E3": 1,
    }
    assert [u.display_name for u in audit.disabled_with_tracked] == ["Dee Single"]


def test_license_audit_with_no_users():
    audit = audit_licenses([], TRACKED_SKUS, RuleTable.from_config(LicenseAuditConfig()))
    assert audit.violations == ()
    assert audit.by_rule == ()
    assert audit.by_license == ()
