"""
Record extractor: typed fields out of single-element fragments.

Handles `<Record>` fragments for heart rate and step count, and
`<WorkoutEvent>` tags. A fragment that lacks a required field yields
None and the caller drops it; nothing here raises on bad data.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from models import HeartRateSample, StepSample, WorkoutEvent
from tag_scanner import attr, attr_float

# Example format: "2025-02-10 08:45:23 -0500"
_HEALTH_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})\s(\d{2}:\d{2}:\d{2})\s([+-]\d{2})(\d{2})")


def parse_health_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse an Apple Health date into an aware datetime.

    The export writes `YYYY-MM-DD HH:MM:SS +HHMM`; that is rewritten to
    ISO form with a colon in the offset. Anything else goes through
    `datetime.fromisoformat`, and a naive result is taken as UTC.
    Returns None for missing or unparseable text.
    """

    if not date_str:
        return None
    m = _HEALTH_DATE.search(date_str)
    candidate = f"{m.group(1)}T{m.group(2)}{m.group(3)}:{m.group(4)}" if m else date_str.strip()
    try:
        dt = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def extract_heart_rate(fragment: str) -> Optional[HeartRateSample]:
    value = attr_float(fragment, "value")
    ts = parse_health_date(attr(fragment, "startDate"))
    if value is None or ts is None:
        return None
    return HeartRateSample(timestamp=ts, value=value)


def extract_step(fragment: str) -> Optional[StepSample]:
    value = attr_float(fragment, "value")
    start = parse_health_date(attr(fragment, "startDate"))
    end = parse_health_date(attr(fragment, "endDate"))
    if value is None or start is None or end is None:
        return None
    return StepSample(start=start, end=end, value=value)


def extract_workout_event(tag: str) -> Optional[WorkoutEvent]:
    """`<WorkoutEvent type=".." date=".."/>`; `dateInterval` is accepted too.

    An event keeps its type even when the date text does not parse.
    """

    event_type = attr(tag, "type")
    raw_date = attr(tag, "date")
    if raw_date is None:
        raw_date = attr(tag, "dateInterval")
    if event_type is None or raw_date is None:
        return None
    return WorkoutEvent(type=event_type, date=parse_health_date(raw_date))
