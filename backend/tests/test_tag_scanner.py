import pytest

from helpers import hr_record
from tag_scanner import (
    HEART_RATE_MARKER,
    STEP_COUNT_MARKER,
    FragmentKind,
    MarkerSearch,
    attr,
    attr_float,
    build_markers,
    find_element_start,
    find_nearest_marker,
    find_record_end,
    find_workout_end,
    first_attr_float,
    workout_marker,
)

RUNNING_MARKER = workout_marker("HKWorkoutActivityTypeRunning")


def test_build_markers_fast_mode_only_has_workouts():
    markers = build_markers(False, ["HKWorkoutActivityTypeRunning"])
    assert markers == [(RUNNING_MARKER, FragmentKind.WORKOUT)]


def test_build_markers_detailed_mode_orders_records_first():
    markers = build_markers(True, ["HKWorkoutActivityTypeRunning", "HKWorkoutActivityTypeWalking"])
    assert [kind for _, kind in markers] == [
        FragmentKind.HEART_RATE,
        FragmentKind.STEP,
        FragmentKind.WORKOUT,
        FragmentKind.WORKOUT,
    ]
    assert markers[3][0] == 'workoutActivityType="HKWorkoutActivityTypeWalking"'


def test_find_nearest_marker_returns_earliest():
    text = f'<Record {STEP_COUNT_MARKER}/> <Workout {RUNNING_MARKER}> <Record {HEART_RATE_MARKER}/>'
    match = find_nearest_marker(text, build_markers(True, ["HKWorkoutActivityTypeRunning"]))
    assert match.kind is FragmentKind.STEP
    assert match.index == text.index(STEP_COUNT_MARKER)


def test_find_nearest_marker_respects_start_offset():
    text = f'<Record {STEP_COUNT_MARKER}/> <Record {HEART_RATE_MARKER}/>'
    match = find_nearest_marker(text, build_markers(True, []), start=5)
    assert match.index == text.index(STEP_COUNT_MARKER)
    match = find_nearest_marker(text, build_markers(True, []), start=match.index + 1)
    assert match.kind is FragmentKind.HEART_RATE


def test_find_nearest_marker_tie_goes_to_first_listed():
    markers = [("x", FragmentKind.HEART_RATE), ("x", FragmentKind.STEP)]
    assert find_nearest_marker("..x..", markers).kind is FragmentKind.HEART_RATE


def test_find_nearest_marker_none_when_absent():
    assert find_nearest_marker("<Record type=\"Other\"/>", build_markers(True, ["X"])) is None


def test_marker_search_agrees_with_find_nearest_marker():
    markers = build_markers(True, ["HKWorkoutActivityTypeRunning"])
    text = f'<Record {STEP_COUNT_MARKER}/> <Workout {RUNNING_MARKER}> <Record {HEART_RATE_MARKER}/> <Record {STEP_COUNT_MARKER}/>'
    search = MarkerSearch(text, markers)
    pos = 0
    while True:
        match = search.nearest(pos)
        assert match == find_nearest_marker(text, markers, pos)
        if match is None:
            break
        pos = match.index + 1


def test_marker_search_tie_goes_to_first_listed():
    markers = [("x", FragmentKind.HEART_RATE), ("x", FragmentKind.STEP)]
    assert MarkerSearch("..x..", markers).nearest(0).kind is FragmentKind.HEART_RATE


def test_marker_search_does_not_rescan_for_absent_markers():
    # only heart-rate records: the step and workout markers are searched once
    n = 5000
    markers = build_markers(True, ["HKWorkoutActivityTypeRunning"])
    text = "".join(hr_record("2024-03-01 07:00:00 -0500", 60 + i % 40) for i in range(n))
    search = MarkerSearch(text, markers)
    pos = 0
    seen = 0
    while True:
        match = search.nearest(pos)
        if match is None:
            break
        assert match.kind is FragmentKind.HEART_RATE
        seen += 1
        pos = match.index + 1
    assert seen == n
    assert search.finds <= n + len(markers)


def test_find_element_start_walks_back_to_open_bracket():
    text = f'<a/>\n <Record {HEART_RATE_MARKER} value="1"/>'
    idx = text.index(HEART_RATE_MARKER)
    assert find_element_start(text, idx) == text.index("<Record")


def test_find_element_start_outside_window_is_none():
    text = f'<Record {HEART_RATE_MARKER}/>'
    idx = text.index(HEART_RATE_MARKER)
    assert find_element_start(text, idx, lower_bound=1) is None
    assert find_element_start(HEART_RATE_MARKER, 0) is None


def test_find_record_end_self_closing():
    text = '<Record value="1"/><Other>x</Record>'
    assert find_record_end(text, 0) == text.index("/>") + 2


def test_find_record_end_explicit_close_first():
    text = '<Record value="1">x</Record><Other/>'
    assert find_record_end(text, 0) == text.index("</Record>") + len("</Record>")


def test_find_record_end_missing_terminator():
    assert find_record_end('<Record value="1"', 0) is None


def test_find_workout_end():
    text = "<Workout a=\"1\">x</Workout>tail"
    assert text[find_workout_end(text, 0):] == "tail"
    assert find_workout_end("<Workout a=\"1\">x</Work", 0) is None


def test_attr_reads_value():
    tag = '<Record type="T" value="72" unit="count/min"/>'
    assert attr(tag, "value") == "72"
    assert attr(tag, "unit") == "count/min"
    assert attr(tag, "sourceName") is None


def test_attr_does_not_match_longer_attribute_names():
    tag = '<Record startDate="2024-01-01" checksum="9"/>'
    assert attr(tag, "Date") is None
    assert attr(tag, "sum") is None


def test_attr_float_treats_bad_numbers_as_missing():
    assert attr_float('value="12.5"', "value") == 12.5
    assert attr_float('value="abc"', "value") is None
    assert attr_float('other="1"', "value") is None


@pytest.mark.parametrize("raw", ["nan", "NaN", "inf", "-Infinity", "infinity", "1e999"])
def test_attr_float_treats_non_finite_numbers_as_missing(raw):
    assert attr_float(f'value="{raw}"', "value") is None


def test_first_attr_float_skips_non_finite_values():
    block = '<WorkoutStatistics average="nan" avg="140"/>'
    assert first_attr_float(block, ("average", "avg")) == 140.0


def test_first_attr_float_falls_back_in_order():
    block = '<WorkoutStatistics avg="140" average="oops"/>'
    assert first_attr_float(block, ("average", "avg")) == 140.0
    assert first_attr_float(block, ("minimum", "min")) is None
