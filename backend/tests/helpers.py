"""Builders for small Apple Health export snippets used across tests."""

HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n<HealthData locale="en_US">\n <ExportDate value="2024-03-05 10:00:00 -0500"/>\n'
FOOTER = "</HealthData>\n"

RUNNING = "HKWorkoutActivityTypeRunning"


def _attrs(attrs: dict) -> str:
    return " ".join(f'{k}="{v}"' for k, v in attrs.items() if v is not None)


def hr_record(date: str, value, source: str = "Apple Watch") -> str:
    return (
        f' <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="{source}" unit="count/min" '
        f'creationDate="{date}" startDate="{date}" endDate="{date}" value="{value}">\n'
        f'  <MetadataEntry key="HKMetadataKeyHeartRateMotionContext" value="0"/>\n'
        f" </Record>\n"
    )


def step_record(start: str, end: str, value) -> str:
    return (
        f' <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count" '
        f'creationDate="{end}" startDate="{start}" endDate="{end}" value="{value}"/>\n'
    )


def statistics(stat_type: str, **attrs) -> str:
    return f'  <WorkoutStatistics type="{stat_type}" {_attrs(attrs)}/>\n'


def workout_event(event_type: str, date: str, attr_name: str = "date") -> str:
    return f'  <WorkoutEvent type="{event_type}" {attr_name}="{date}" duration="1" durationUnit="min"/>\n'


def workout(start: str, end: str, body: str = "", activity: str = RUNNING, **attrs) -> str:
    head = {
        "workoutActivityType": activity,
        "duration": attrs.pop("duration", "30"),
        "durationUnit": attrs.pop("durationUnit", "min"),
    }
    head.update(attrs)
    head.setdefault("sourceName", "Apple Watch")
    head.setdefault("startDate", start)
    head.setdefault("endDate", end)
    return f" <Workout {_attrs(head)}>\n{body} </Workout>\n"


def export(*parts: str) -> str:
    return HEADER + "".join(parts) + FOOTER
