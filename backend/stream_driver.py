"""
Chunked stream driver.

Reads an export in fixed-size chunks and carries a small amount of text
across chunk boundaries so that every wanted element is seen whole,
exactly once, no matter where the chunks are cut.

The scanning logic is a pure state machine:

    advance(state, chunk) -> (state, fragments)
    finish(state)         -> fragments

with two states. SCANNING keeps a pending buffer and looks for markers.
AWAITING_WORKOUT_CLOSE holds everything from an opened `<Workout` onwards
until `</Workout>` arrives. `ParseSession` owns one run: the state, the
three accumulators, and the dispatch of fragments to the extractors.
`parse_source` sequences the chunk reads around a session.

Buffer-trim policy: when a buffer holds no further marker, only the last
`tail_chars` characters of its unscanned part are kept for the next chunk.
That is enough to hold a marker or element start cut in half by a chunk
boundary, and bounds memory while skipping the bulk of the export.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from threading import Event
from typing import Callable, List, Optional, Sequence, Tuple

from correlator import correlate
from export_source import ChunkSource, open_export
from models import HeartRateSample, ParseCounts, ParseMode, ParseProgress, StepSample, WorkoutRecord
from record_extractor import extract_heart_rate, extract_step
from settings import settings
from tag_scanner import (
    WORKOUT_CLOSE,
    FragmentKind,
    Marker,
    MarkerSearch,
    build_markers,
    find_element_start,
    find_record_end,
    find_workout_end,
)
from workout_extractor import extract_workout, opening_tag, statistics_blocks

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ParseProgress], None]


class ParseCancelled(Exception):
    """Raised between chunks once the caller's cancel event is set."""


class ScanState(str, Enum):
    SCANNING = "scanning"
    AWAITING_WORKOUT_CLOSE = "awaiting_workout_close"


@dataclass(frozen=True)
class Fragment:
    kind: FragmentKind
    text: str


@dataclass(frozen=True)
class ParseState:
    pending_buffer: str = ""
    awaiting_workout_close: bool = False
    workout_accumulator: str = ""
    # accumulator offset from which `</Workout>` has not been searched yet
    close_search_from: int = 0

    @property
    def scan_state(self) -> ScanState:
        if self.awaiting_workout_close:
            return ScanState.AWAITING_WORKOUT_CLOSE
        return ScanState.SCANNING


def _resume_offset(text: str) -> int:
    return max(0, len(text) - len(WORKOUT_CLOSE) + 1)


def scan_buffer(text: str, markers: Sequence[Marker], tail_chars: int) -> Tuple[List[Fragment], str, bool]:
    """Extract every complete wanted element from `text`.

    Returns (fragments, carry, awaiting). When `awaiting` is True, `carry`
    starts at an unclosed workout and becomes the workout accumulator;
    otherwise it is the text to prepend to the next chunk.
    """

    fragments: List[Fragment] = []
    search = MarkerSearch(text, markers)
    pos = 0
    while pos < len(text):
        match = search.nearest(pos)
        if match is None:
            return fragments, text[max(pos, len(text) - tail_chars):], False

        elem_start = find_element_start(text, match.index, pos)
        if elem_start is None:
            # element opened before the scan window
            pos = match.index + 1
            continue

        if match.kind is FragmentKind.WORKOUT:
            end = find_workout_end(text, match.index)
            if end is None:
                return fragments, text[elem_start:], True
        else:
            end = find_record_end(text, match.index)
            if end is None:
                return fragments, text[elem_start:], False

        fragments.append(Fragment(match.kind, text[elem_start:end]))
        pos = end
    return fragments, "", False


def advance(
    state: ParseState, chunk: str, markers: Sequence[Marker], tail_chars: int
) -> Tuple[ParseState, List[Fragment]]:
    """Consume one chunk."""

    fragments: List[Fragment] = []
    if state.awaiting_workout_close:
        acc = state.workout_accumulator + chunk
        end = find_workout_end(acc, state.close_search_from)
        if end is None:
            return replace(state, workout_accumulator=acc, close_search_from=_resume_offset(acc)), fragments
        fragments.append(Fragment(FragmentKind.WORKOUT, acc[:end]))
        buffer = acc[end:]
    else:
        buffer = state.pending_buffer + chunk

    found, carry, awaiting = scan_buffer(buffer, markers, tail_chars)
    fragments.extend(found)
    if awaiting:
        return ParseState(
            awaiting_workout_close=True,
            workout_accumulator=carry,
            close_search_from=_resume_offset(carry),
        ), fragments
    return ParseState(pending_buffer=carry), fragments


def finish(state: ParseState, markers: Sequence[Marker], tail_chars: int) -> List[Fragment]:
    """Flush at end of input.

    A workout still waiting for `</Workout>` (a truncated export) is
    handed over as-is for best-effort extraction.
    """

    if state.awaiting_workout_close:
        if state.workout_accumulator:
            return [Fragment(FragmentKind.WORKOUT, state.workout_accumulator)]
        return []
    if not state.pending_buffer:
        return []
    found, carry, awaiting = scan_buffer(state.pending_buffer, markers, tail_chars)
    if awaiting and carry:
        found.append(Fragment(FragmentKind.WORKOUT, carry))
    return found


@dataclass
class ParseSession:
    """State and accumulators for exactly one parse run."""

    mode: ParseMode = ParseMode.FAST
    activity_types: Optional[Sequence[str]] = None
    tail_chars: Optional[int] = None
    state: ParseState = field(default_factory=ParseState)
    workouts: List[WorkoutRecord] = field(default_factory=list)
    hr_samples: List[HeartRateSample] = field(default_factory=list)
    step_samples: List[StepSample] = field(default_factory=list)

    def __post_init__(self):
        self.mode = ParseMode(self.mode)
        if self.activity_types is None:
            self.activity_types = list(settings.workout_activity_types)
        if self.tail_chars is None:
            self.tail_chars = settings.buffer_tail_chars
        self.markers = build_markers(self.mode is ParseMode.DETAILED, self.activity_types)
        self._diagnostic_logged = False

    @property
    def counts(self) -> ParseCounts:
        return ParseCounts(
            workouts=len(self.workouts),
            hr_records=len(self.hr_samples),
            step_records=len(self.step_samples),
        )

    def feed(self, chunk: str) -> None:
        self.state, fragments = advance(self.state, chunk, self.markers, self.tail_chars)
        self._dispatch(fragments)

    def close(self) -> None:
        if self.state.awaiting_workout_close and self.state.workout_accumulator:
            logger.warning(
                "Input ended inside a <Workout> element; extracting %d buffered chars as-is",
                len(self.state.workout_accumulator),
            )
        fragments = finish(self.state, self.markers, self.tail_chars)
        self.state = ParseState()
        self._dispatch(fragments)

    def result(self) -> List[WorkoutRecord]:
        return correlate(self.workouts, self.hr_samples, self.step_samples, self.mode)

    def _dispatch(self, fragments: List[Fragment]) -> None:
        for fragment in fragments:
            if fragment.kind is FragmentKind.WORKOUT:
                self._log_diagnostic(fragment.text)
                workout = extract_workout(fragment.text)
                if workout is not None:
                    self.workouts.append(workout)
            elif fragment.kind is FragmentKind.HEART_RATE:
                sample = extract_heart_rate(fragment.text)
                if sample is not None:
                    self.hr_samples.append(sample)
                else:
                    logger.debug("Dropping heart-rate record: %.120s", fragment.text)
            else:
                step = extract_step(fragment.text)
                if step is not None:
                    self.step_samples.append(step)
                else:
                    logger.debug("Dropping step record: %.120s", fragment.text)

    def _log_diagnostic(self, text: str) -> None:
        if self._diagnostic_logged or not logger.isEnabledFor(logging.DEBUG):
            return
        self._diagnostic_logged = True
        tag = opening_tag(text) or "(no opening tag)"
        logger.debug(
            "First workout: %d chars, %d statistics blocks, opening tag: %s",
            len(text), len(statistics_blocks(text)), tag[:500],
        )


def parse_source(
    source: ChunkSource,
    mode: Optional[ParseMode] = None,
    *,
    chunk_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[Event] = None,
    activity_types: Optional[Sequence[str]] = None,
) -> List[WorkoutRecord]:
    """Parse a whole export from `source` and return correlated workouts.

    Chunks are read strictly one after another. `on_progress` is called
    after each chunk; `cancel_event` is checked before each read.
    """

    session = ParseSession(mode=mode or settings.default_parse_mode, activity_types=activity_types)
    chunk_size = chunk_size or settings.chunk_size_bytes
    total = source.size
    offset = 0
    t0 = time.time()
    logger.info("Parsing %s (%d bytes, %s mode)", source.name, total, session.mode.value)

    while offset < total:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Parse of %s cancelled at byte %d", source.name, offset)
            raise ParseCancelled(f"Parse cancelled after {offset} of {total} bytes")
        length = min(chunk_size, total - offset)
        chunk = source.read(offset, length)
        offset += length
        session.feed(chunk)
        if on_progress is not None:
            on_progress(ParseProgress(fraction_complete=min(offset / total, 1.0), counts=session.counts))

    session.close()
    workouts = session.result()
    counts = session.counts
    logger.info(
        "Parsed %s in %.1f s: %d workouts, %d HR records, %d step records",
        source.name, time.time() - t0, len(workouts), counts.hr_records, counts.step_records,
    )
    return workouts


def parse_file(path: str, mode: Optional[ParseMode] = None, **kwargs) -> List[WorkoutRecord]:
    """Open an `.xml` or `.zip` export and parse it; see `parse_source`."""

    with open_export(path) as source:
        return parse_source(source, mode, **kwargs)
