"""Unit tests for the pure conflict checker."""

from types import SimpleNamespace

import pytest

from conflicts import InvalidFormat, conflicts, find_conflict, intervals_overlap, to_minutes


def slot(start, end, fields, id=None):
    return SimpleNamespace(id=id, start=start, end=end, fields=fields)


@pytest.mark.parametrize(
    "value, expected",
    [("00:00", 0), ("09:30", 570), ("9:05", 545), ("23:59", 1439)],
)
def test_to_minutes(value, expected):
    assert to_minutes(value) == expected


@pytest.mark.parametrize("value", ["", "0930", "09:30:00", "ab:cd", "09:", None])
def test_to_minutes_rejects_malformed(value):
    with pytest.raises(InvalidFormat):
        to_minutes(value)


def test_invalid_format_is_a_value_error():
    assert issubclass(InvalidFormat, ValueError)


INTERVALS = [
    (540, 600),
    (570, 630),
    (600, 660),
    (480, 720),
    (540, 540),
    (0, 1440),
]


@pytest.mark.parametrize("a", INTERVALS)
@pytest.mark.parametrize("b", INTERVALS)
def test_overlap_is_symmetric(a, b):
    assert intervals_overlap(*a, *b) == intervals_overlap(*b, *a)


def test_back_to_back_does_not_overlap():
    assert not intervals_overlap(540, 600, 600, 660)
    assert not intervals_overlap(600, 660, 540, 600)


def test_zero_length_never_overlaps():
    assert not intervals_overlap(540, 600, 570, 570)
    assert not intervals_overlap(570, 570, 540, 600)
    assert not intervals_overlap(570, 570, 570, 570)


def test_partial_and_nested_overlap():
    assert intervals_overlap(540, 600, 570, 630)
    assert intervals_overlap(480, 720, 540, 600)


def test_conflict_needs_shared_field_and_overlap():
    existing = [slot("09:00", "10:00", ["A", "B"], id=1)]

    assert conflicts(slot("09:30", "10:30", ["B"]), existing)
    assert not conflicts(slot("09:30", "10:30", ["C"]), existing)
    assert not conflicts(slot("10:00", "11:00", ["A"]), existing)


def test_back_to_back_same_field_is_admitted():
    existing = [slot("09:00", "10:00", ["A"], id=1)]
    assert not conflicts(slot("10:00", "11:00", ["A"]), existing)
    assert not conflicts(slot("08:00", "09:00", ["A"]), existing)


def test_find_conflict_returns_first_clash():
    existing = [
        slot("08:00", "09:00", ["A"], id=1),
        slot("09:00", "10:00", ["B"], id=2),
        slot("09:30", "11:00", ["A", "B"], id=3),
    ]
    clash = find_conflict(slot("09:15", "09:45", ["A", "B"]), existing)
    assert clash.id == 2


def test_empty_existing_set_never_conflicts():
    assert find_conflict(slot("09:00", "10:00", ["A"]), []) is None
