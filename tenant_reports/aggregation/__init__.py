from .counting import (
    UNCATEGORIZED,
    UNKNOWN,
    UNKNOWN_MANUFACTURER,
    UNKNOWN_MODEL,
    UNKNOWN_OS,
    age_bucket,
    bucket_by_age,
    compliance_rate,
    count_by,
    find_duplicates,
    flatten_duplicates,
)
from .license_rules import GroupCondition, LicenseRule, RuleTable, evaluate_license_rules
from .summaries import (
    DeviceSummary,
    EnrollmentHistory,
    LicenseAudit,
    audit_licenses,
    summarize_devices,
    summarize_history,
)

__all__ = [
    "UNCATEGORIZED",
    "UNKNOWN",
    "UNKNOWN_MANUFACTURER",
    "UNKNOWN_MODEL",
    "UNKNOWN_OS",
    "age_bucket",
    "bucket_by_age",
    "compliance_rate",
    "count_by",
    "find_duplicates",
    "flatten_duplicates",
    "GroupCondition",
    "LicenseRule",
    "RuleTable",
    "evaluate_license_rules",
    "DeviceSummary",
    "EnrollmentHistory",
    "LicenseAudit",
    "audit_licenses",
    "summarize_devices",
    "summarize_history",
]
