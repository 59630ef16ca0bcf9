import pytest

from helpers import export, hr_record, statistics, step_record, workout, workout_event


@pytest.fixture
def sample_export_text():
    """Export with two running workouts, a cycling workout, a workout with a
    broken start date, and heart-rate / step records around the first run."""

    run_march_2 = workout(
        "2024-03-02 07:00:00 -0500",
        "2024-03-02 07:45:00 -0500",
        body=(
            statistics(
                "HKQuantityTypeIdentifierHeartRate",
                startDate="2024-03-02 07:00:00 -0500",
                endDate="2024-03-02 07:45:00 -0500",
                average="150", minimum="120", maximum="170", unit="count/min",
            )
        ),
        duration="2700",
        durationUnit="s",
        totalDistance="10",
        totalDistanceUnit="km",
        sourceName="Jürgen’s Apple Watch",
    )
    run_march_1 = workout(
        "2024-03-01 07:00:00 -0500",
        "2024-03-01 07:30:00 -0500",
        body=(
            '  <MetadataEntry key="HKIndoorWorkout" value="1"/>\n'
            + workout_event("HKWorkoutEventTypePause", "2024-03-01 07:10:00 -0500")
            + workout_event("HKWorkoutEventTypeResume", "2024-03-01 07:12:00 -0500")
        ),
        totalDistance="3",
        totalDistanceUnit="mi",
        totalEnergyBurned="300",
        totalEnergyBurnedUnit="Cal",
    )
    cycling = workout(
        "2024-03-01 18:00:00 -0500",
        "2024-03-01 19:00:00 -0500",
        body=statistics("HKQuantityTypeIdentifierHeartRate", average="130", minimum="90", maximum="160"),
        activity="HKWorkoutActivityTypeCycling",
    )
    broken = workout("x", "2024-03-03 07:30:00 -0500", startDate="garbage")

    return export(
        hr_record("2024-03-01 06:55:00 -0500", 80),
        step_record("2024-03-01 06:50:00 -0500", "2024-03-01 07:05:00 -0500", 150),
        hr_record("2024-03-01 07:00:00 -0500", 100),
        step_record("2024-03-01 07:05:00 -0500", "2024-03-01 07:25:00 -0500", 3400),
        hr_record("2024-03-01 07:10:00 -0500", 140),
        hr_record("2024-03-01 07:20:00 -0500", 150),
        step_record("2024-03-01 07:25:00 -0500", "2024-03-01 07:40:00 -0500", 300),
        hr_record("2024-03-01 07:30:00 -0500", 160),
        hr_record("2024-03-01 07:35:00 -0500", 90),
        run_march_2,
        run_march_1,
        cycling,
        broken,
    )


@pytest.fixture
def export_file(tmp_path, sample_export_text):
    path = tmp_path / "export.xml"
    path.write_text(sample_export_text, encoding="utf-8")
    return path
