"""
Data models used across the parser.

Time-series samples are plain frozen dataclasses because a detailed
parse creates millions of them. Workout-level records and the messages
sent to consumers are Pydantic models so they serialize straight to JSON.

Guidelines:
- All instants are timezone-aware `datetime` objects while parsing.
- In JSON mode every instant serializes to canonical UTC text
    (`2025-02-10T13:45:23.000Z`), see `to_instant_text`.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, PlainSerializer


def to_instant_text(dt: datetime) -> str:
    """Render an aware datetime as UTC text with millisecond precision."""

    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


Instant = Annotated[datetime, PlainSerializer(to_instant_text, return_type=str, when_used="json")]


class ParseMode(str, Enum):
    FAST = "fast"
    DETAILED = "detailed"


@dataclass(frozen=True)
class HeartRateSample:
    """One heart-rate reading (bpm) at an instant."""
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class StepSample:
    """A step count accumulated over [start, end]."""
    start: datetime
    end: datetime
    value: float


class HeartRatePoint(BaseModel):
    """HR sample as attached to a workout."""

    timestamp: Instant
    value: float


class WorkoutStatistics(BaseModel):
    avg_hr: Optional[float] = None
    min_hr: Optional[float] = None
    max_hr: Optional[float] = None
    distance: Optional[float] = None
    distance_unit: Optional[str] = None
    active_calories: Optional[float] = None
    calories_unit: Optional[str] = None
    avg_speed: Optional[float] = None
    max_speed: Optional[float] = None


class WorkoutEvent(BaseModel):
    type: str
    date: Optional[Instant] = None


class WorkoutRecord(BaseModel):
    """One workout extracted from a `<Workout>` block.

    Units are normalized on extraction: `duration` in minutes,
    `total_distance` in miles, `total_energy_burned` in kcal and
    `pace` in minutes per mile. `hr_samples` and `cadence` are only
    filled in by the correlator.
    """

    start_date: Instant
    end_date: Instant
    duration: Optional[float] = None
    total_distance: Optional[float] = None
    total_energy_burned: Optional[float] = None
    source_name: str = ""
    is_indoor: bool = False
    statistics: WorkoutStatistics = Field(default_factory=WorkoutStatistics)
    events: List[WorkoutEvent] = Field(default_factory=list)
    hr_samples: List[HeartRatePoint] = Field(default_factory=list)
    cadence: Optional[int] = None
    pace: Optional[float] = None

    def to_output(self) -> Dict[str, Any]:
        """JSON-ready dict with every instant as canonical text."""

        return self.model_dump(mode="json")


class ParseCounts(BaseModel):
    workouts: int = 0
    hr_records: int = 0
    step_records: int = 0


class ParseProgress(BaseModel):
    fraction_complete: float = Field(ge=0.0, le=1.0)
    counts: ParseCounts


class ProgressMessage(ParseProgress):
    type: Literal["progress"] = "progress"


class CompleteMessage(BaseModel):
    type: Literal["complete"] = "complete"
    workouts: List[Dict[str, Any]]


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    message: str


class ParseRequest(BaseModel):
        """Input shape for the HTTP parse routes.

        Fields:
        - `path`: export file (`.xml` or `.zip`), relative to `EXPORTS_DIR`.
        - `mode`: `fast` or `detailed`; the configured default when omitted.
        """

        path: str
        mode: Optional[ParseMode] = None
