"""
Tag scanner: locate known elements in a text buffer without an XML parser.

Apple Health exports are far too large for a DOM and are often truncated
or slightly malformed, so the stream driver never tokenizes XML. Instead
it searches for marker substrings (an attribute/value pair that only a
wanted element carries), walks back to the `<` that opens the element,
and searches forward for the element terminator. Everything here is plain
`str.find` / `str.rfind` plus a cached attribute regex.

Nothing in this module raises on malformed input. Absence is `None`.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

WORKOUT_CLOSE = "</Workout>"
RECORD_CLOSE = "</Record>"
SELF_CLOSE = "/>"

HEART_RATE_MARKER = 'type="HKQuantityTypeIdentifierHeartRate"'
STEP_COUNT_MARKER = 'type="HKQuantityTypeIdentifierStepCount"'


class FragmentKind(str, Enum):
    WORKOUT = "workout"
    HEART_RATE = "heart_rate"
    STEP = "step"


Marker = Tuple[str, FragmentKind]


@dataclass(frozen=True)
class MarkerMatch:
    index: int
    kind: FragmentKind


def workout_marker(activity_type: str) -> str:
    return f'workoutActivityType="{activity_type}"'


def build_markers(detailed: bool, activity_types: Iterable[str]) -> List[Marker]:
    """Markers to search for, in tie-break order.

    Fast mode only looks for workouts of the given activity types;
    detailed mode also looks for heart-rate and step-count records.
    """

    markers: List[Marker] = []
    if detailed:
        markers.append((HEART_RATE_MARKER, FragmentKind.HEART_RATE))
        markers.append((STEP_COUNT_MARKER, FragmentKind.STEP))
    for activity_type in activity_types:
        markers.append((workout_marker(activity_type), FragmentKind.WORKOUT))
    return markers


def find_nearest_marker(text: str, markers: Sequence[Marker], start: int = 0) -> Optional[MarkerMatch]:
    """Earliest occurrence of any marker at or after `start`.

    Ties go to the marker listed first.
    """

    best: Optional[MarkerMatch] = None
    for needle, kind in markers:
        idx = text.find(needle, start)
        if idx != -1 and (best is None or idx < best.index):
            best = MarkerMatch(idx, kind)
    return best


class MarkerSearch:
    """Repeated nearest-marker lookups over one buffer.

    The next index of every marker is cached and only searched again once
    the scan position has passed it; a marker that is not found is not
    searched for again in this buffer. Scanning a buffer is then linear in
    its length however rare any one marker is.
    """

    def __init__(self, text: str, markers: Sequence[Marker]):
        self.text = text
        self.markers = list(markers)
        self._next: List[Optional[int]] = [-2] * len(self.markers)
        self.finds = 0

    def nearest(self, start: int) -> Optional[MarkerMatch]:
        best: Optional[MarkerMatch] = None
        for i, (needle, kind) in enumerate(self.markers):
            idx = self._next[i]
            if idx is None:
                continue
            if idx < start:
                self.finds += 1
                found = self.text.find(needle, start)
                idx = found if found != -1 else None
                self._next[i] = idx
                if idx is None:
                    continue
            if best is None or idx < best.index:
                best = MarkerMatch(idx, kind)
        return best


def find_element_start(text: str, match_index: int, lower_bound: int = 0) -> Optional[int]:
    """Offset of the `<` opening the element that contains `match_index`.

    Returns None when that `<` is not inside `text[lower_bound:]`, i.e. the
    element start is not in the current scan window. Callers must then
    step past the match instead of retrying it.
    """

    idx = text.rfind("<", lower_bound, match_index + 1)
    return idx if idx != -1 else None


def find_workout_end(text: str, start: int) -> Optional[int]:
    """Offset just past the first `</Workout>` at or after `start`."""

    idx = text.find(WORKOUT_CLOSE, start)
    return idx + len(WORKOUT_CLOSE) if idx != -1 else None


def find_record_end(text: str, start: int) -> Optional[int]:
    """Offset just past whichever of `/>` or `</Record>` comes first."""

    self_close = text.find(SELF_CLOSE, start)
    if self_close != -1:
        close_tag = text.find(RECORD_CLOSE, start, self_close)
    else:
        close_tag = text.find(RECORD_CLOSE, start)
    if self_close == -1 and close_tag == -1:
        return None
    if self_close != -1 and (close_tag == -1 or self_close < close_tag):
        return self_close + len(SELF_CLOSE)
    return close_tag + len(RECORD_CLOSE)


@lru_cache(maxsize=None)
def _attr_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(r'(?<![\w:.-])' + re.escape(name) + r'="([^"]*)"')


def attr(text: str, name: str) -> Optional[str]:
    """Value of the first `name="..."` in `text`, or None."""

    m = _attr_pattern(name).search(text)
    return m.group(1) if m else None


def attr_float(text: str, name: str) -> Optional[float]:
    """Numeric attribute value; missing, non-numeric or non-finite text gives None."""

    raw = attr(text, name)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def first_attr_float(text: str, names: Sequence[str]) -> Optional[float]:
    """First attribute in `names` that is present and numeric."""

    for name in names:
        value = attr_float(text, name)
        if value is not None:
            return value
    return None
