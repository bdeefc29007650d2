"""
Timeline reconstruction for one asset over one shift window.

Walks the asset's events in time order and produces a gap-free,
non-overlapping sequence of StateIntervals covering exactly
[window.start, window.end).

Events are accepted on [window.start, window.end). An event exactly at the
end belongs to the next window and is dropped here.

Logic:
1. Stable sort by timestamp (equal timestamps keep input order)
2. Seed the opening state from the first event's previous_state,
   otherwise assume RUNNING and flag the inferred start
3. Close the open interval at each event and open the next one
4. Close the last interval at the window end
5. Coalesce adjacent intervals with the same state
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from asset_kpi.models.event import AssetState, Event, EventType, Shift
from asset_kpi.models.kpi import StateInterval, StateMismatch

logger = logging.getLogger(__name__)

DEFAULT_STATE = AssetState.RUNNING

SEED_FROM_PREVIOUS_STATE = "previous_state"
SEED_DEFAULT = "default"

# Events that split intervals without changing state
BOUNDARY_EVENTS = {EventType.SHIFT_START, EventType.SHIFT_END, EventType.HEARTBEAT}


class TimelineIntegrityError(Exception):
    """Raised when a reconstructed timeline has gaps, overlaps or negative spans."""


@dataclass(frozen=True)
class ShiftWindow:
    """The [start, end) span a timeline must cover."""
    start: datetime
    end: datetime
    shift_id: Optional[int] = None

    @classmethod
    def for_shift(cls, shift: Shift, now: datetime) -> "ShiftWindow":
        return cls(start=shift.start_time, end=shift.effective_end(now), shift_id=shift.id)

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= timestamp < self.end


@dataclass
class TimelineResult:
    """Intervals of one (asset, window) plus what the walk had to infer or drop."""
    asset_id: int
    window: ShiftWindow
    intervals: List[StateInterval] = field(default_factory=list)
    event_count: int = 0
    no_data: bool = False
    inferred_start: bool = False
    seed_state: AssetState = DEFAULT_STATE
    seed_source: str = SEED_DEFAULT
    dropped: List[Event] = field(default_factory=list)
    state_mismatches: List[StateMismatch] = field(default_factory=list)


@dataclass
class _Segment:
    state: AssetState
    start: datetime
    end: Optional[datetime] = None
    stop_reason: Optional[str] = None
    source_event_id: Optional[int] = None
    micro: bool = False
    event_ids: List[int] = field(default_factory=list)


class _TimelineBuilder:
    """Accumulates segments; zero-length segments are discarded on close."""

    def __init__(self, state: AssetState, start: datetime):
        self.closed: List[_Segment] = []
        self.open = _Segment(state=state, start=start)

    def split(
        self,
        at: datetime,
        state: AssetState,
        stop_reason: Optional[str] = None,
        event: Optional[Event] = None,
        micro: bool = False
    ) -> None:
        self.close(at)
        self.open = _Segment(
            state=state,
            start=at,
            stop_reason=stop_reason,
            source_event_id=event.id if event is not None else None,
            micro=micro,
            event_ids=[event.id] if event is not None and event.id is not None else [],
        )

    def close(self, at: datetime) -> None:
        if at > self.open.start:
            self.open.end = at
            self.closed.append(self.open)
        elif self.open.event_ids and self.closed:
            # keep the provenance of an event whose interval collapsed to nothing
            self.closed[-1].event_ids.extend(self.open.event_ids)


def _target_state(event: Event, current: AssetState) -> AssetState:
    """State opened by a state-changing event."""
    if event.event_type == EventType.STATE_CHANGE:
        return event.new_state or current
    if event.event_type == EventType.STOP_START:
        return AssetState.STOPPED
    if event.event_type == EventType.MAINTENANCE_START:
        return AssetState.MAINTENANCE
    if event.event_type == EventType.ERROR:
        return AssetState.ERROR
    if event.event_type in (EventType.STOP_END, EventType.MAINTENANCE_END):
        return event.new_state or AssetState.RUNNING
    return current


def _seed(first: Event, window: ShiftWindow):
    """Opening state, its source, and whether it had to be inferred."""
    if first.previous_state is not None:
        seed, source = first.previous_state, SEED_FROM_PREVIOUS_STATE
    else:
        seed, source = DEFAULT_STATE, SEED_DEFAULT

    if first.timestamp > window.start:
        inferred = True
    else:
        sets_state = first.event_type not in BOUNDARY_EVENTS and first.event_type != EventType.MICRO_STOP
        inferred = first.previous_state is None and not sets_state
    return seed, source, inferred


def merge_intervals(intervals: List[StateInterval]) -> List[StateInterval]:
    """
    Coalesce adjacent intervals with the same state.

    KPIs are always computed on the merged sequence, so a stop split by
    HEARTBEAT or SHIFT_* events still counts as one stop. Already merged
    input comes back unchanged.
    """
    merged: List[StateInterval] = []
    for interval in intervals:
        if merged and merged[-1].state == interval.state:
            last = merged[-1]
            merged[-1] = last.model_copy(update={
                "end": interval.end,
                "stop_reason": last.stop_reason or interval.stop_reason,
                "is_micro_stop_event": last.is_micro_stop_event and interval.is_micro_stop_event,
                "event_ids": last.event_ids + interval.event_ids,
            })
        else:
            merged.append(interval)
    return merged


def validate_intervals(intervals: List[StateInterval], window: ShiftWindow) -> None:
    """
    Check that intervals exactly tile [window.start, window.end).

    Raises:
        TimelineIntegrityError: on gaps, overlaps, negative spans or wrong bounds
    """
    if not intervals:
        raise TimelineIntegrityError(f"No intervals for window {window.start} - {window.end}")
    if intervals[0].start != window.start:
        raise TimelineIntegrityError(
            f"Timeline starts at {intervals[0].start}, window starts at {window.start}"
        )
    if intervals[-1].end != window.end:
        raise TimelineIntegrityError(
            f"Timeline ends at {intervals[-1].end}, window ends at {window.end}"
        )
    for previous, current in zip(intervals, intervals[1:]):
        if current.start != previous.end:
            kind = "gap" if current.start > previous.end else "overlap"
            raise TimelineIntegrityError(
                f"Timeline {kind} between {previous.end} and {current.start}"
            )
    for interval in intervals:
        if interval.end < interval.start:
            raise TimelineIntegrityError(
                f"Interval end {interval.end} precedes start {interval.start}"
            )


def reconstruct(
    asset_id: int,
    window: ShiftWindow,
    events: List[Event],
    coalesce: bool = True
) -> TimelineResult:
    """
    Rebuild the state timeline of one asset over one window.

    Args:
        asset_id: Asset being reconstructed
        window: Span to cover; must have positive duration
        events: The asset's events assigned to this window (any order)
        coalesce: Merge adjacent equal-state intervals. Disable to keep
            HEARTBEAT/SHIFT_* split points for auditing; KPI code merges
            them again with merge_intervals().

    Returns:
        TimelineResult with the interval sequence and diagnostics

    Raises:
        ValueError: if the window is empty or inverted
        TimelineIntegrityError: if the walk produced an invalid sequence
    """
    if window.end <= window.start:
        raise ValueError(f"Window {window.start} - {window.end} has no duration")

    result = TimelineResult(asset_id=asset_id, window=window)

    in_window: List[Event] = []
    for event in events:
        if event.timestamp is None or not window.contains(event.timestamp):
            result.dropped.append(event)
        else:
            in_window.append(event)

    if result.dropped:
        logger.warning(
            f"Asset {asset_id}, shift {window.shift_id}: dropped "
            f"{len(result.dropped)} events outside [{window.start}, {window.end})"
        )

    # sorted() is stable: equal timestamps keep their input order
    ordered = sorted(in_window, key=lambda e: e.timestamp)
    result.event_count = len(ordered)

    if not ordered:
        result.no_data = True
        builder = _TimelineBuilder(DEFAULT_STATE, window.start)
    else:
        seed, source, inferred = _seed(ordered[0], window)
        result.seed_state, result.seed_source, result.inferred_start = seed, source, inferred
        builder = _TimelineBuilder(seed, window.start)

    narrative = builder.open.state
    micro_until: Optional[datetime] = None

    for event in ordered:
        ts = event.timestamp

        if micro_until is not None and micro_until <= ts:
            builder.split(micro_until, narrative)
            micro_until = None

        reported = event.previous_state
        if reported is not None and reported not in (narrative, builder.open.state):
            result.state_mismatches.append(StateMismatch(
                event_id=event.id,
                asset_id=asset_id,
                shift_id=window.shift_id,
                timestamp=ts,
                expected_state=narrative,
                reported_state=reported,
            ))

        if event.event_type in BOUNDARY_EVENTS:
            builder.split(
                ts,
                builder.open.state,
                stop_reason=builder.open.stop_reason,
                event=event,
                micro=builder.open.micro,
            )
        elif event.event_type == EventType.MICRO_STOP:
            if not event.duration:
                logger.debug(f"{event.label}: micro-stop without duration, kept as boundary")
                builder.split(ts, builder.open.state, builder.open.stop_reason, event, builder.open.micro)
                continue
            builder.split(ts, AssetState.STOPPED, stop_reason=event.stop_reason, event=event, micro=True)
            micro_until = ts + timedelta(seconds=event.duration)
        else:
            micro_until = None
            narrative = _target_state(event, narrative)
            reason = event.stop_reason if narrative != AssetState.RUNNING else None
            builder.split(ts, narrative, stop_reason=reason, event=event)

    if micro_until is not None and micro_until < window.end:
        builder.split(micro_until, narrative)
    builder.close(window.end)

    intervals = [
        StateInterval(
            asset_id=asset_id,
            shift_id=window.shift_id,
            state=segment.state,
            start=segment.start,
            end=segment.end,
            stop_reason=segment.stop_reason,
            source_event_id=segment.source_event_id,
            is_micro_stop_event=segment.micro,
            event_ids=segment.event_ids,
        )
        for segment in builder.closed
    ]
    result.intervals = merge_intervals(intervals) if coalesce else intervals

    validate_intervals(result.intervals, window)

    logger.debug(
        f"Asset {asset_id}, shift {window.shift_id}: {len(ordered)} events -> "
        f"{len(result.intervals)} intervals"
    )
    return result
