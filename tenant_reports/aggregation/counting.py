"""
Counting primitives — frequency tables, age buckets, duplicate detection, rates.
Every function takes a record sequence and returns a new immutable structure.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from ..models import DeviceRecord, DuplicateGroup, FrequencyEntry, FrequencyTable, is_blank

# Sentinel labels substituted for blank keys
UNKNOWN_MODEL = "Unknown Model"
UNKNOWN_OS = "Unknown OS"
UNKNOWN_MANUFACTURER = "Unknown Manufacturer"
UNCATEGORIZED = "Uncategorized"
UNKNOWN = "Unknown"

DEFAULT_AGE_BOUNDARIES = (7, 14, 28)

SECONDS_PER_DAY = 86400


def label_for(value: Any, sentinel: str) -> str:
    return sentinel if is_blank(value) else str(value).strip()


def freeze_counts(counts: Counter) -> FrequencyTable:
    """
    Order a Counter by count descending.
    sorted() is stable and Counter keeps insertion order, so ties stay first-seen.
    """
    ordered = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return tuple(FrequencyEntry(label, count) for label, count in ordered)


def count_by(
    records: Iterable[Any],
    key_fn: Callable[[Any], Any],
    sentinel: str = UNKNOWN,
) -> FrequencyTable:
    """Group records by key_fn(record), substituting sentinel for blank keys."""
    counts: Counter = Counter()
    for record in records:
        counts[label_for(key_fn(record), sentinel)] += 1
    return freeze_counts(counts)


def bucket_labels(boundaries: Sequence[int] = DEFAULT_AGE_BOUNDARIES) -> tuple[str, ...]:
    """Labels for the buckets [0,b0], (b0,b1], ..., (bn,inf) in ascending age order."""
    labels = [f"0-{boundaries[0]} days"]
    for lower, upper in zip(boundaries, boundaries[1:]):
        labels.append(f"{lower}-{upper} days")
    labels.append(f"Over {boundaries[-1]} days")
    return tuple(labels)


def elapsed_days(timestamp: datetime, now: datetime) -> float:
    return (now - timestamp).total_seconds() / SECONDS_PER_DAY


def age_bucket(days: float, boundaries: Sequence[int] = DEFAULT_AGE_BOUNDARIES) -> int:
    """
    Index of the bucket holding `days`, checking the oldest boundary first.
    Exactly on a boundary belongs to the younger bucket.
    """
    for index in range(len(boundaries) - 1, -1, -1):
        if days > boundaries[index]:
            return index + 1
    return 0


def bucket_by_age(
    records: Iterable[Any],
    now: datetime,
    boundaries: Sequence[int] = DEFAULT_AGE_BOUNDARIES,
    timestamp_fn: Callable[[Any], Optional[datetime]] = lambda r: r.last_sync,
) -> FrequencyTable:
    """
    Histogram of elapsed days since timestamp_fn(record).
    Records without a timestamp are left out of every bucket; when no record has
    one the table is empty, otherwise every bucket is listed in ascending age order.
    """
    counts = [0] * (len(boundaries) + 1)
    for record in records:
        timestamp = timestamp_fn(record)
        if timestamp is None:
            continue
        counts[age_bucket(elapsed_days(timestamp, now), boundaries)] += 1
    return age_table(counts, boundaries)


def age_table(counts: Sequence[int], boundaries: Sequence[int] = DEFAULT_AGE_BOUNDARIES) -> FrequencyTable:
    """Per-bucket counts as a table, empty when every bucket is zero."""
    if not any(counts):
        return ()
    return tuple(FrequencyEntry(label, count) for label, count in zip(bucket_labels(boundaries), counts))


def _enrollment_order(record: DeviceRecord):
    # Missing enrollment sorts last
    return (record.enrolled is None, record.enrolled or datetime.min)


def find_duplicates(
    records: Iterable[DeviceRecord],
    key_fn: Callable[[DeviceRecord], Optional[str]] = lambda r: r.serial_number,
    order_fn: Callable[[DeviceRecord], Any] = _enrollment_order,
) -> list[DuplicateGroup]:
    """Groups of records sharing a non-blank key, size > 1, ordered by key."""
    grouped: dict[str, list[DeviceRecord]] = defaultdict(list)
    for record in records:
        key = key_fn(record)
        if is_blank(key):
            continue
        grouped[str(key).strip()].append(record)

    return [
        DuplicateGroup(key=key, records=tuple(sorted(members, key=order_fn)))
        for key, members in sorted(grouped.items())
        if len(members) > 1
    ]


def flatten_duplicates(groups: Iterable[DuplicateGroup]) -> list[DeviceRecord]:
    """Records from every group, sorted by (key, enrollment)."""
    return [record for group in groups for record in group.records]


def compliance_rate(compliant: int, noncompliant: int) -> float:
    """Compliant share of evaluated devices as a percentage, 0.0 when none were evaluated."""
    evaluated = compliant + noncompliant
    if evaluated == 0:
        return 0.0
    return round(100 * compliant / evaluated, 1)
