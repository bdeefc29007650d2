"""
Normalization of host records into engine models.

Converts loosely-typed event/shift rows (as returned by the host's
persistence layer) into Event and Shift models. Unknown event tags and
states are rejected as malformed input; unparseable timestamps are kept as
events without a timestamp so they can be reported as orphans.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
import logging

from pydantic import ValidationError

from asset_kpi.models.event import AssetState, Event, EventType, Shift, ShiftStatus
from asset_kpi.models.kpi import MalformedRecord
from asset_kpi.utils.timeutils import ensure_utc, parse_timestamp

logger = logging.getLogger(__name__)


# =============================================================================
# CODE MAPS (stored text -> enum)
# =============================================================================

EVENT_TYPE_MAP = {member.value.lower(): member for member in EventType}
EVENT_TYPE_MAP.update({
    "state change": EventType.STATE_CHANGE,
    "statechange": EventType.STATE_CHANGE,
    "microstop": EventType.MICRO_STOP,
    "micro stop": EventType.MICRO_STOP,
    "stop start": EventType.STOP_START,
    "stop end": EventType.STOP_END,
    "shift start": EventType.SHIFT_START,
    "shift end": EventType.SHIFT_END,
    "maintenance start": EventType.MAINTENANCE_START,
    "maintenance end": EventType.MAINTENANCE_END,
})

STATE_MAP = {member.value.lower(): member for member in AssetState}

SHIFT_STATUS_MAP = {member.value: member for member in ShiftStatus}


class MalformedRecordError(ValueError):
    """Raised when a record cannot be normalized."""


def _lookup(value: Optional[Any], code_map: dict, what: str):
    """Case-insensitive lookup; None passes through, unknown text raises."""
    if value is None:
        return None
    key = str(value).strip().lower()
    if not key:
        return None
    try:
        return code_map[key]
    except KeyError:
        raise MalformedRecordError(f"unknown {what} '{value}'")


def normalize_event_type(value: Any) -> EventType:
    event_type = _lookup(value, EVENT_TYPE_MAP, "event_type")
    if event_type is None:
        raise MalformedRecordError("missing event_type")
    return event_type


def normalize_state(value: Any) -> Optional[AssetState]:
    return _lookup(value, STATE_MAP, "state")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class EventParseResult:
    """Events ready for assignment plus rejected rows."""
    events: List[Event] = field(default_factory=list)
    malformed: List[MalformedRecord] = field(default_factory=list)


@dataclass
class ShiftParseResult:
    """Shifts with valid bounds plus rejected rows."""
    shifts: List[Shift] = field(default_factory=list)
    malformed: List[MalformedRecord] = field(default_factory=list)


def normalize_event(record: Dict[str, Any]) -> Event:
    """
    Build an Event from a host row.

    Raises:
        MalformedRecordError: unknown tag/state or unusable identifiers
    """
    timestamp, raw_timestamp = parse_timestamp(record.get("timestamp"))
    event_type = normalize_event_type(record.get("event_type"))
    previous_state = normalize_state(record.get("previous_state"))
    new_state = normalize_state(record.get("new_state"))
    try:
        return Event(
            id=_optional_int(record.get("id")),
            asset_id=record.get("asset_id"),
            timestamp=timestamp,
            raw_timestamp=raw_timestamp,
            event_type=event_type,
            previous_state=previous_state,
            new_state=new_state,
            duration=record.get("duration"),
            stop_reason=record.get("stop_reason") or None,
            shift_id=_optional_int(record.get("shift_id")),
            metadata=record.get("metadata") or {},
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise MalformedRecordError(str(e)) from e


def parse_event_records(records: Iterable[Dict[str, Any]]) -> EventParseResult:
    """
    Normalize a batch of event rows.

    Rows that cannot form an Event are reported, never raised; the rest of
    the batch is still returned.
    """
    result = EventParseResult()
    for record in records:
        try:
            result.events.append(normalize_event(record))
        except MalformedRecordError as e:
            logger.warning(f"Rejected event {record.get('id')}: {e}")
            result.malformed.append(MalformedRecord(
                record_type="event",
                record_id=record.get("id"),
                reason="malformed_event",
                detail=str(e),
            ))

    logger.debug(
        f"Normalized {len(result.events)} events "
        f"({len(result.malformed)} malformed)"
    )
    return result


def parse_shift_records(records: Iterable[Dict[str, Any]]) -> ShiftParseResult:
    """
    Normalize a batch of shift rows.

    A shift with an unparseable start, an unparseable non-empty end, or an
    end that is not after its start is reported as malformed.
    """
    result = ShiftParseResult()
    for record in records:
        shift_id = record.get("id")
        start, raw_start = parse_timestamp(record.get("start_time"))
        end, raw_end = parse_timestamp(record.get("end_time"))

        problem = None
        if start is None:
            problem = f"invalid start_time {raw_start!r}"
        elif end is None and raw_end not in (None, ""):
            problem = f"invalid end_time {raw_end!r}"
        elif end is not None and end <= start:
            problem = f"end_time {end.isoformat()} is not after start_time {start.isoformat()}"

        status = SHIFT_STATUS_MAP.get(str(record.get("status") or "").strip().lower())
        if status is None:
            status = ShiftStatus.ACTIVE if end is None else ShiftStatus.COMPLETED

        if problem is None:
            try:
                result.shifts.append(Shift(
                    id=shift_id,
                    name=record.get("shift_name") or record.get("name"),
                    start_time=start,
                    end_time=end,
                    status=status,
                ))
                continue
            except ValidationError as e:
                problem = str(e)

        logger.warning(f"Rejected shift {shift_id}: {problem}")
        result.malformed.append(MalformedRecord(
            record_type="shift",
            record_id=shift_id,
            reason="invalid_shift",
            detail=problem,
        ))

    return result


def to_utc_event(event: Event) -> Event:
    """Return the event with a UTC timestamp (a copy only when it changes)."""
    if event.timestamp is None:
        return event
    utc = ensure_utc(event.timestamp)
    if utc.tzinfo is event.timestamp.tzinfo:
        return event
    return event.model_copy(update={"timestamp": utc})


def to_utc_shift(shift: Shift) -> Shift:
    """Return the shift with UTC start/end times."""
    update = {"start_time": ensure_utc(shift.start_time)}
    if shift.end_time is not None:
        update["end_time"] = ensure_utc(shift.end_time)
    return shift.model_copy(update=update)
