"""Conflict detection between reservations.

Intervals are half-open: a booking ending at 10:00 does not overlap one
starting at 10:00, so back-to-back bookings on the same field are allowed.
"""

from typing import Iterable


class InvalidFormat(ValueError):
    """Raised when a time-of-day is not two colon-separated integers."""


def to_minutes(time_of_day: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    try:
        hours, minutes = str(time_of_day).split(":")
        return int(hours) * 60 + int(minutes)
    except ValueError:
        raise InvalidFormat(f"Invalid time '{time_of_day}', expected HH:MM")


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # Zero-length intervals contain no instant, so they overlap nothing
    if a_start >= a_end or b_start >= b_end:
        return False
    return a_start < b_end and b_start < a_end


def _shares_field(a_fields: Iterable[str], b_fields: Iterable[str]) -> bool:
    # isdisjoint stops at the first shared element
    return not set(a_fields).isdisjoint(b_fields)


def find_conflict(candidate, existing: Iterable):
    """Return the first reservation in ``existing`` that clashes with ``candidate``.

    Both sides only need ``start``, ``end`` and ``fields`` attributes.
    """
    start = to_minutes(candidate.start)
    end = to_minutes(candidate.end)

    for other in existing:
        if not intervals_overlap(start, end, to_minutes(other.start), to_minutes(other.end)):
            continue
        if _shares_field(candidate.fields, other.fields):
            return other
    return None


def conflicts(candidate, existing: Iterable) -> bool:
    return find_conflict(candidate, existing) is not None
