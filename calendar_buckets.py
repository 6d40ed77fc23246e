"""
Calendar-bucketed directory prefixes for time-range queries.

Clips are stored under ``YYYY/MM/DD/HH/...`` (see the consumer's default output
format). To answer "which files fall in [from, to)" without walking every hour
of a long range, the range is decomposed into the coarsest prefixes that cover
it exactly: whole years, then whole months, whole days and finally whole hours.

Example: [2023-05-31 23:00, 2023-06-01 01:00) -> ["2023/05/31/23", "2023/06/01/00"]
"""

import datetime
from typing import List

YEAR, MONTH, DAY, HOUR = range(4)

_ONE_HOUR = datetime.timedelta(hours=1)

# stands in for boundaries past year 9999
_CALENDAR_END = datetime.datetime.max


class BucketRangeError(RuntimeError):
    """A sub-range escaped its parent bucket. Indicates a bug, not bad input."""


def _truncate(ts: datetime.datetime, depth: int) -> datetime.datetime:
    if depth == YEAR:
        return ts.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    if depth == MONTH:
        return ts.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if depth == DAY:
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)
    return ts.replace(minute=0, second=0, microsecond=0)


def _next_boundary(start: datetime.datetime, depth: int) -> datetime.datetime:
    """Start of the bucket following the one beginning at ``start``."""
    try:
        if depth == YEAR:
            return start.replace(year=start.year + 1)
        if depth == MONTH:
            if start.month == 12:
                return start.replace(year=start.year + 1, month=1)
            return start.replace(month=start.month + 1)
        if depth == DAY:
            return start + datetime.timedelta(days=1)
        return start + _ONE_HOUR
    except (OverflowError, ValueError):
        return _CALENDAR_END


def bucket_prefix(ts: datetime.datetime, depth: int) -> str:
    """Format the prefix of ``ts`` at ``depth`` (YEAR .. HOUR), e.g. ``2023/05``."""
    parts = [f"{ts.year:04d}", f"{ts.month:02d}", f"{ts.day:02d}", f"{ts.hour:02d}"]
    return "/".join(parts[:depth + 1])


def _decompose(start: datetime.datetime, end: datetime.datetime, depth: int) -> List[str]:
    # start < end, both hour aligned unless end is _CALENDAR_END
    if depth > YEAR and _truncate(start, depth - 1) != _truncate(end - _ONE_HOUR, depth - 1):
        raise BucketRangeError(
            f"range [{start}, {end}) spans more than one {('year', 'month', 'day')[depth - 1]}"
        )

    result = []
    cursor = start
    while cursor < end:
        unit_start = _truncate(cursor, depth)
        unit_end = _next_boundary(unit_start, depth)
        if unit_end <= cursor:
            raise BucketRangeError(f"bucket boundary did not advance past {cursor}")

        if depth == HOUR or (cursor == unit_start and unit_end <= end):
            result.append(bucket_prefix(cursor, depth))
        else:
            result.extend(_decompose(cursor, min(unit_end, end), depth + 1))
        cursor = unit_end
    return result


def list_target_directories(from_ts: datetime.datetime, to_ts: datetime.datetime) -> List[str]:
    """
    Return the prefixes whose subtrees hold every file bucketed in [from_ts, to_ts).

    Only the wall-clock fields of the datetimes are used, so callers convert to
    the bucketing timezone beforehand. The range is widened to whole hours.
    An empty or reversed range yields an empty list; rejecting it is up to
    the caller.
    """
    start = _truncate(from_ts.replace(tzinfo=None), HOUR)
    end = to_ts.replace(tzinfo=None)
    if _truncate(end, HOUR) != end:
        end = _next_boundary(_truncate(end, HOUR), HOUR)

    if start >= end:
        return []
    return _decompose(start, end, YEAR)


def expand_to_hours(prefix: str) -> List[datetime.datetime]:
    """List the start of every hour bucket contained in ``prefix``."""
    fields = [int(part) for part in prefix.split("/")]
    depth = len(fields) - 1
    defaults = [1, 1, 1, 0]
    year, month, day, hour = fields + defaults[len(fields):]
    start = datetime.datetime(year, month, day, hour)
    end = _next_boundary(start, depth)

    hours = []
    cursor = start
    while cursor < end:
        hours.append(cursor)
        cursor = _next_boundary(cursor, HOUR)
    return hours
