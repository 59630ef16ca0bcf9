"""
Workout block extractor.

Turns one complete `<Workout>...</Workout>` fragment into a
`WorkoutRecord` with normalized units:

- duration in minutes (`s`/`sec` divided by 60, `hr`/`hour` times 60)
- distance in miles (`km`, `m` converted, unit compared case-insensitively)
- energy in kcal (`kJ` divided by 4.184)

Nested `<WorkoutStatistics>` blocks fill the statistics mapping and act as
a fallback when the workout tag carries no distance or energy. Exports
from different iOS versions spell the statistic types differently, so they
are classified by substring rather than by exact identifier.

A fragment whose start or end date does not parse yields None.
"""

import logging
import re
from typing import List, Optional

from models import WorkoutEvent, WorkoutRecord, WorkoutStatistics
from record_extractor import extract_workout_event, parse_health_date
from tag_scanner import attr, attr_float, first_attr_float

logger = logging.getLogger(__name__)

KM_TO_MILES = 0.621371
M_TO_MILES = 0.000621371
KJ_PER_KCAL = 4.184

_OPEN_TAG = re.compile(r"<Workout\b[^>]*>")
_STATISTICS_BLOCK = re.compile(r"<WorkoutStatistics\b.*?(?:/>|</WorkoutStatistics>)", re.DOTALL)
_EVENT_TAG = re.compile(r"<WorkoutEvent\b[^>]*>")
_INDOOR = re.compile(r'key="HKIndoorWorkout"\s+value="(\d)"')

_AMOUNT_ATTRS = ("sum", "quantity", "value", "total")


def opening_tag(fragment: str) -> Optional[str]:
    m = _OPEN_TAG.search(fragment)
    return m.group(0) if m else None


def statistics_blocks(fragment: str) -> List[str]:
    return [m.group(0) for m in _STATISTICS_BLOCK.finditer(fragment)]


def normalize_duration(duration: Optional[float], unit: str) -> Optional[float]:
    if duration is None:
        return None
    if unit in ("s", "sec"):
        return duration / 60
    if unit in ("hr", "hour"):
        return duration * 60
    return duration


def distance_to_miles(distance: Optional[float], unit: Optional[str]) -> Optional[float]:
    if distance is None:
        return None
    u = (unit or "").lower()
    if u == "km":
        return distance * KM_TO_MILES
    if u == "m":
        return distance * M_TO_MILES
    return distance


def energy_to_kcal(energy: Optional[float], unit: Optional[str]) -> Optional[float]:
    if energy is None:
        return None
    if (unit or "").lower() == "kj":
        return energy / KJ_PER_KCAL
    return energy


def read_statistics(fragment: str) -> WorkoutStatistics:
    stats = WorkoutStatistics()
    for block in statistics_blocks(fragment):
        stat_type = attr(block, "type")
        if not stat_type:
            continue

        if "HeartRate" in stat_type:
            stats.avg_hr = first_attr_float(block, ("average", "avg"))
            stats.min_hr = first_attr_float(block, ("minimum", "min"))
            stats.max_hr = first_attr_float(block, ("maximum", "max"))

        if "Distance" in stat_type:
            dist = first_attr_float(block, _AMOUNT_ATTRS)
            if dist is not None and dist > 0:
                stats.distance = dist
                stats.distance_unit = attr(block, "unit") or "mi"

        if "Energy" in stat_type:
            cal = first_attr_float(block, _AMOUNT_ATTRS)
            if cal is not None and cal > 0:
                stats.active_calories = cal
                stats.calories_unit = attr(block, "unit")

        if "RunningSpeed" in stat_type:
            stats.avg_speed = attr_float(block, "average")
            stats.max_speed = attr_float(block, "maximum")
    return stats


def read_events(fragment: str) -> List[WorkoutEvent]:
    events: List[WorkoutEvent] = []
    for m in _EVENT_TAG.finditer(fragment):
        event = extract_workout_event(m.group(0))
        if event is not None:
            events.append(event)
    return events


def extract_workout(fragment: str) -> Optional[WorkoutRecord]:
    """Build a WorkoutRecord from a workout fragment, or None to drop it."""

    tag = opening_tag(fragment) or fragment

    start = parse_health_date(attr(tag, "startDate"))
    end = parse_health_date(attr(tag, "endDate"))
    if start is None or end is None:
        logger.debug("Dropping workout without parseable dates: %.120s", tag)
        return None

    duration = normalize_duration(attr_float(tag, "duration"), attr(tag, "durationUnit") or "min")

    indoor = _INDOOR.search(fragment)
    stats = read_statistics(fragment)

    distance = attr_float(tag, "totalDistance")
    distance_unit = attr(tag, "totalDistanceUnit") or "mi"
    if not distance and stats.distance:
        distance = stats.distance
        distance_unit = stats.distance_unit or "mi"
    distance = distance_to_miles(distance, distance_unit)

    energy = attr_float(tag, "totalEnergyBurned")
    energy_unit = attr(tag, "totalEnergyBurnedUnit") or "Cal"
    if not energy and stats.active_calories:
        energy = stats.active_calories
        energy_unit = stats.calories_unit or "Cal"
    energy = energy_to_kcal(energy, energy_unit)

    pace = None
    if distance and distance > 0 and duration and duration > 0:
        pace = duration / distance

    return WorkoutRecord(
        start_date=start,
        end_date=end,
        duration=duration,
        total_distance=distance,
        total_energy_burned=energy,
        source_name=attr(tag, "sourceName") or "",
        is_indoor=bool(indoor) and indoor.group(1) == "1",
        statistics=stats,
        events=read_events(fragment),
        pace=pace,
    )
