from datetime import datetime, timedelta, timezone

import pytest

from helpers import hr_record, step_record
from record_extractor import extract_heart_rate, extract_step, extract_workout_event, parse_health_date


def test_parse_health_date_rewrites_offset():
    dt = parse_health_date("2024-03-01 07:00:00 -0500")
    assert dt == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert dt.utcoffset() == timedelta(hours=-5)


def test_parse_health_date_positive_offset():
    dt = parse_health_date("2024-03-01 17:30:00 +0530")
    assert dt == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_health_date_falls_back_to_iso():
    assert parse_health_date("2024-03-01T12:00:00+00:00") == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


def test_parse_health_date_naive_iso_is_utc():
    dt = parse_health_date("2024-03-01T12:00:00")
    assert dt.tzinfo is not None
    assert dt == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw", [None, "", "not a date", "2024-13-45 99:00:00 -0500"])
def test_parse_health_date_invalid(raw):
    assert parse_health_date(raw) is None


def test_extract_heart_rate():
    sample = extract_heart_rate(hr_record("2024-03-01 07:10:00 -0500", 142))
    assert sample.value == 142.0
    assert sample.timestamp == datetime(2024, 3, 1, 12, 10, tzinfo=timezone.utc)


def test_extract_heart_rate_requires_date_and_value():
    assert extract_heart_rate('<Record type="HKQuantityTypeIdentifierHeartRate" value="70"/>') is None
    assert extract_heart_rate(hr_record("2024-03-01 07:10:00 -0500", "n/a")) is None
    assert extract_heart_rate(hr_record("yesterday", 70)) is None


def test_extract_step():
    sample = extract_step(step_record("2024-03-01 07:00:00 -0500", "2024-03-01 07:10:00 -0500", 1200))
    assert sample.value == 1200.0
    assert sample.end - sample.start == timedelta(minutes=10)


def test_extract_step_requires_end_date():
    fragment = '<Record type="HKQuantityTypeIdentifierStepCount" startDate="2024-03-01 07:00:00 -0500" value="5"/>'
    assert extract_step(fragment) is None


def test_extract_workout_event():
    event = extract_workout_event('<WorkoutEvent type="HKWorkoutEventTypePause" date="2024-03-01 07:10:00 -0500"/>')
    assert event.type == "HKWorkoutEventTypePause"
    assert event.date == datetime(2024, 3, 1, 12, 10, tzinfo=timezone.utc)


def test_extract_workout_event_date_interval_variant():
    event = extract_workout_event(
        '<WorkoutEvent type="HKWorkoutEventTypeLap" dateInterval="2024-03-01 07:10:00 -0500"/>'
    )
    assert event.date == datetime(2024, 3, 1, 12, 10, tzinfo=timezone.utc)


def test_extract_workout_event_keeps_type_with_bad_date():
    event = extract_workout_event('<WorkoutEvent type="HKWorkoutEventTypeResume" date="soon"/>')
    assert event.type == "HKWorkoutEventTypeResume"
    assert event.date is None


def test_extract_workout_event_needs_type_and_date():
    assert extract_workout_event('<WorkoutEvent date="2024-03-01 07:10:00 -0500"/>') is None
    assert extract_workout_event('<WorkoutEvent type="HKWorkoutEventTypeLap"/>') is None
