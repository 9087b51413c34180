# backend/inspection_booking/services/working_hours.py
"""
Working-hours model.

A center's schedule maps weekday codes to ordered, non-overlapping open
intervals:

    {"mon": [{"start": "08:00", "end": "12:00"},
             {"start": "14:00", "end": "18:00"}],
     "sun": []}

Accepted input formats (all normalized to the one above):
  - named keys "mon".."sun" or numeric keys "0".."6" (0 = Monday)
  - intervals as {"start", "end"} dicts or ["HH:MM", "HH:MM"] pairs
  - a single {"start", "end"} dict instead of a list
"""

import json
import re
from datetime import date

WEEKDAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

Interval = tuple[str, str]
Schedule = dict[str, list[Interval]]


def normalize_time(value) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    hours, minutes = value.strip().split(":")
    return f"{int(hours):02d}:{minutes}"


def _normalize_interval(raw) -> Interval:
    if isinstance(raw, dict):
        start, end = raw.get("start"), raw.get("end")
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        start, end = raw
    else:
        raise ValueError(f"Invalid interval: {raw!r}")
    start, end = normalize_time(start), normalize_time(end)
    if start >= end:
        raise ValueError(f"Interval start must be before end: {start}-{end}")
    return start, end


def _day_key(key) -> str:
    key = str(key).strip().lower()
    if key in WEEKDAY_CODES:
        return key
    if key.isdigit() and 0 <= int(key) <= 6:
        return WEEKDAY_CODES[int(key)]
    raise ValueError(f"Unknown weekday code: {key!r}")


def parse_working_hours(raw) -> Schedule:
    """
    Parse and validate a working-hours document.

    Args:
        raw: JSON string, dict, or None (= closed every day)

    Returns:
        Schedule with all seven weekday codes, intervals sorted by start.

    Raises:
        ValueError: malformed times, inverted or overlapping intervals.
    """
    if raw is None or raw == "":
        data = {}
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Working hours must be valid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise ValueError("Working hours must be an object keyed by weekday")

    schedule: Schedule = {code: [] for code in WEEKDAY_CODES}
    for key, day_data in data.items():
        code = _day_key(key)
        if day_data is None:
            continue
        if isinstance(day_data, dict):
            day_data = [day_data]
        if not isinstance(day_data, list):
            raise ValueError(f"Intervals for {code} must be a list")

        intervals = sorted(_normalize_interval(item) for item in day_data)
        for (_, prev_end), (next_start, _) in zip(intervals, intervals[1:]):
            if next_start < prev_end:
                raise ValueError(f"Overlapping intervals on {code}")
        schedule[code] = intervals

    return schedule


def dump_working_hours(schedule: Schedule) -> str:
    """Serialize a schedule for the centers.working_hours column."""
    return json.dumps(
        {
            code: [{"start": s, "end": e} for s, e in schedule.get(code, [])]
            for code in WEEKDAY_CODES
        }
    )


def weekday_code(target_date: date) -> str:
    return WEEKDAY_CODES[target_date.weekday()]


def day_intervals(schedule: Schedule, target_date: date) -> list[Interval]:
    """Open intervals for the weekday of ``target_date`` (empty = closed)."""
    return list(schedule.get(weekday_code(target_date), []))


def center_schedule(center) -> Schedule:
    """
    Schedule of a stored center.

    Stored documents were validated on write; anything unreadable is
    treated as closed rather than failing reads.
    """
    try:
        return parse_working_hours(center.working_hours)
    except ValueError:
        return {code: [] for code in WEEKDAY_CODES}
