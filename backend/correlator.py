"""
Correlator: join time-series samples onto workouts.

Runs once, after the whole export has been scanned. Workouts, heart-rate
samples and step samples are each sorted by start time; for every workout
a binary search finds where its window begins in each sample stream and a
short forward scan collects what falls inside.

The binary search deliberately lands one index *before* the first sample
at or after the workout start, and the scan re-checks the lower bound,
so a sample exactly on the start boundary is always included.
"""

import math
from bisect import bisect_left
from datetime import datetime
from operator import attrgetter
from statistics import fmean
from typing import Callable, List, Sequence

from models import HeartRatePoint, HeartRateSample, ParseMode, StepSample, WorkoutRecord


def predecessor_index(items: Sequence, target: datetime, key: Callable) -> int:
    """Index of the last item whose key is < target, clamped to 0."""

    return max(0, bisect_left(items, target, key=key) - 1)


def heart_rate_in_window(samples: Sequence[HeartRateSample], start: datetime, end: datetime) -> List[HeartRateSample]:
    """Samples with start <= timestamp <= end; `samples` sorted by timestamp."""

    found = []
    for i in range(predecessor_index(samples, start, attrgetter("timestamp")), len(samples)):
        sample = samples[i]
        if sample.timestamp > end:
            break
        if sample.timestamp >= start:
            found.append(sample)
    return found


def apportioned_steps(samples: Sequence[StepSample], start: datetime, end: datetime) -> float:
    """Steps falling inside [start, end]; `samples` sorted by start.

    A bucket that only partly overlaps the window contributes in
    proportion to the overlapping share of its own duration.
    """

    total = 0.0
    for i in range(predecessor_index(samples, start, attrgetter("start")), len(samples)):
        sample = samples[i]
        if sample.start > end:
            break
        if sample.end < start:
            continue
        bucket_seconds = (sample.end - sample.start).total_seconds()
        if bucket_seconds <= 0:
            continue
        overlap = (min(sample.end, end) - max(sample.start, start)).total_seconds()
        total += sample.value * (overlap / bucket_seconds)
    return total


def attach_heart_rate(workout: WorkoutRecord, samples: Sequence[HeartRateSample]) -> None:
    attached = heart_rate_in_window(samples, workout.start_date, workout.end_date)
    if not attached:
        return
    workout.hr_samples = [HeartRatePoint(timestamp=s.timestamp, value=s.value) for s in attached]

    # statistics read from the export win over derived ones
    values = [s.value for s in attached]
    stats = workout.statistics
    if stats.avg_hr is None:
        stats.avg_hr = fmean(values)
    if stats.max_hr is None:
        stats.max_hr = max(values)
    if stats.min_hr is None:
        stats.min_hr = min(values)


def attach_cadence(workout: WorkoutRecord, samples: Sequence[StepSample]) -> None:
    steps = apportioned_steps(samples, workout.start_date, workout.end_date)
    if steps > 0 and workout.duration and workout.duration > 0:
        workout.cadence = math.floor(steps / workout.duration + 0.5)


def correlate(
    workouts: List[WorkoutRecord],
    hr_samples: List[HeartRateSample],
    step_samples: List[StepSample],
    mode: ParseMode,
) -> List[WorkoutRecord]:
    """Workouts in start order, enriched with samples in detailed mode."""

    ordered = sorted(workouts, key=attrgetter("start_date"))
    if ParseMode(mode) is not ParseMode.DETAILED or not (hr_samples or step_samples):
        return ordered

    hr_sorted = sorted(hr_samples, key=attrgetter("timestamp"))
    steps_sorted = sorted(step_samples, key=attrgetter("start"))
    for workout in ordered:
        attach_heart_rate(workout, hr_sorted)
        attach_cadence(workout, steps_sorted)
    return ordered
