from datetime import timedelta

import pytest

from tenant_reports.aggregation import (
    UNKNOWN_MODEL,
    age_bucket,
    bucket_by_age,
    compliance_rate,
    count_by,
    find_duplicates,
    flatten_duplicates,
)
from tenant_reports.aggregation.counting import bucket_labels

from .conftest import NOW, days_ago, make_device


def test_count_by_sums_to_record_count():
    records = [
        make_device(model="A"),
        make_device(model="B"),
        make_device(model="A"),
        make_device(model=None),
    ]
    table = count_by(records, lambda r: r.model, UNKNOWN_MODEL)
    assert sum(e.count for e in table) == len(records)
    assert table[0].label == "A" and table[0].count == 2


def test_count_by_all_blank_goes_to_sentinel():
    records = [make_device(model=None), make_device(model="   "), make_device(model="")]
    table = count_by(records, lambda r: r.model, UNKNOWN_MODEL)
    assert len(table) == 1
    assert table[0].label == UNKNOWN_MODEL
    assert table[0].count == 3


def test_count_by_ties_keep_first_seen_order():
    records = [make_device(model=m) for m in ["Z", "Y", "X", "Y", "Z", "X"]]
    assert [e.label for e in count_by(records, lambda r: r.model)] == ["Z", "Y", "X"]


def test_count_by_empty_input():
    assert count_by([], lambda r: r.model) == ()


def test_compliance_rate():
    assert compliance_rate(0, 0) == 0
    assert compliance_rate(7, 3) == 70.0
    assert compliance_rate(1, 2) == 33.3


@pytest.mark.parametrize("days, expected", [
    (0, 0),
    (7.0, 0),
    (7.01, 1),
    (14.0, 1),
    (14.5, 2),
    (28.0, 2),
    (28.1, 3),
    (400, 3),
])
def test_age_bucket_boundaries(days, expected):
    assert age_bucket(days) == expected


def test_bucket_labels():
    assert bucket_labels((7, 14, 28)) == ("0-7 days", "7-14 days", "14-28 days", "Over 28 days")


def test_bucket_by_age_lists_every_bucket():
    records = [
        make_device(last_sync=days_ago(1)),
        make_device(last_sync=NOW - timedelta(days=14)),
        make_device(last_sync=days_ago(60)),
        make_device(last_sync=None),
    ]
    table = bucket_by_age(records, NOW)
    assert [(e.label, e.count) for e in table] == [
        ("0-7 days", 1),
        ("7-14 days", 1),
        ("14-28 days", 0),
        ("Over 28 days", 1),
    ]


def test_bucket_by_age_without_timestamps_is_empty():
    assert bucket_by_age([make_device(last_sync=None)], NOW) == ()
    assert bucket_by_age([], NOW) == ()


def test_find_duplicates_groups_repeated_serials():
    records = [
        make_device(id="a", serial_number="SN1", enrolled=days_ago(10)),
        make_device(id="b", serial_number="SN1", enrolled=None),
        make_device(id="c", serial_number="SN1", enrolled=days_ago(30)),
        make_device(id="d", serial_number="SN2"),
    ]
    groups = find_duplicates(records)
    assert len(groups) == 1
    assert groups[0].key == "SN1"
    assert groups[0].size == 3
    # Oldest enrollment first, missing enrollment last
    assert [r.id for r in groups[0].records] == ["c", "a", "b"]


def test_find_duplicates_ignores_blank_serials():
    records = [make_device(serial_number=None), make_device(serial_number=" "), make_device(serial_number=None)]
    assert find_duplicates(records) == []


def test_flatten_duplicates_orders_by_key():
    records = [
        make_device(id="1", serial_number="SN9"),
        make_device(id="2", serial_number="SN1"),
        make_device(id="3", serial_number="SN9"),
        make_device(id="4", serial_number="SN1"),
    ]
    flat = flatten_duplicates(find_duplicates(records))
    assert [r.serial_number for r in flat] == ["SN1", "SN1", "SN9", "SN9"]
