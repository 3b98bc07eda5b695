"""Date/time parsing and minute-of-day interval arithmetic.

Intervals are half-open ``(start, end)`` pairs of minutes since midnight in
clinic wall-clock time. Request models reject times with seconds, so
minute precision is exact.
"""

import re
from datetime import date, datetime, time
from uuid import UUID

from practice_scheduling.core.errors import ValidationError

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^\d{2}:\d{2}:\d{2}$')
MINUTES_PER_DAY = 24 * 60

Interval = tuple[int, int]


def parse_date(value, field: str = 'date') -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and DATE_PATTERN.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f'{field} must be a YYYY-MM-DD date.', field=field)


def parse_time(value, field: str = 'time') -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str) and TIME_PATTERN.match(value.strip()):
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f'{field} must be an HH:MM:SS time.', field=field)


def parse_uuid(value, field: str = 'id') -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError(f'{field} must be a UUID.', field=field) from exc


def require_positive_duration(duration_minutes, field: str = 'duration_minutes') -> int:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError('Duration must be a positive number of minutes.', field=field)
    return duration_minutes


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValidationError('Time falls outside the calendar day.', field='time')
    return time(minutes // 60, minutes % 60)


def subtract_interval(intervals: list[Interval], removed: Interval) -> list[Interval]:
    removed_start, removed_end = removed
    if removed_start >= removed_end:
        return list(intervals)

    remaining: list[Interval] = []
    for start, end in intervals:
        if removed_end <= start or removed_start >= end:
            remaining.append((start, end))
            continue
        if start < removed_start:
            remaining.append((start, removed_start))
        if removed_end < end:
            remaining.append((removed_end, end))
    return remaining


def subtract_intervals(intervals: list[Interval], removed: list[Interval]) -> list[Interval]:
    for interval in removed:
        intervals = subtract_interval(intervals, interval)
    return sorted(intervals)


def total_minutes(intervals: list[Interval]) -> int:
    return sum(end - start for start, end in intervals)


def overlaps(first: Interval, second: Interval) -> bool:
    return first[0] < second[1] and second[0] < first[1]


def contains(outer: Interval, inner: Interval) -> bool:
    return outer[0] <= inner[0] and inner[1] <= outer[1]


def daterange(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current = date.fromordinal(current.toordinal() + 1)
