"""
Event-to-shift assignment.

Maps every event to the shift whose window contains it. A stored shift_id
is trusted only when that shift actually contains the event's timestamp;
otherwise the shift is resolved from the timestamp. An event stamped exactly
at a handover belongs to the shift starting then, whatever its stored id.
Events that fit no shift, or have no usable timestamp, are orphans.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple
import logging

from asset_kpi.models.event import Event, Shift
from asset_kpi.models.kpi import OrphanEvent
from asset_kpi.services import shift_resolver

logger = logging.getLogger(__name__)

ORPHAN_INVALID_TIMESTAMP = "invalid_timestamp"
ORPHAN_NO_CONTAINING_SHIFT = "no_containing_shift"


@dataclass(frozen=True)
class AssignedEvent:
    """An event together with the shift it was placed in."""
    event: Event
    shift_id: int
    reassigned: bool = False

    @property
    def timestamp(self) -> datetime:
        return self.event.timestamp


@dataclass
class AssignmentResult:
    """Output of assign(): assigned views, orphans and the reassigned subset."""
    assigned: List[AssignedEvent] = field(default_factory=list)
    orphans: List[OrphanEvent] = field(default_factory=list)

    @property
    def reassigned(self) -> List[AssignedEvent]:
        return [a for a in self.assigned if a.reassigned]


def _orphan(event: Event, reason: str) -> OrphanEvent:
    return OrphanEvent(
        event_id=event.id,
        asset_id=event.asset_id,
        timestamp=event.timestamp,
        raw_timestamp=event.raw_timestamp,
        stored_shift_id=event.shift_id,
        reason=reason,
    )


def handover_shift(
    stored: Shift,
    timestamp: datetime,
    shifts: List[Shift],
    now: datetime
) -> Optional[Shift]:
    """
    Shift taking over an event stamped exactly at the end of its stored shift.

    The stored shift's timeline is [start, end), so such an event only counts
    if a later shift starts at that instant. Returns None when the stored
    shift should keep the event.
    """
    if timestamp != stored.effective_end(now):
        return None
    resolved = shift_resolver.resolve(shifts, timestamp, now)
    if resolved is None or resolved.id == stored.id or resolved.start_time != timestamp:
        return None
    return resolved


def assign_event(
    event: Event,
    shifts: List[Shift],
    now: datetime,
    shift_index: Optional[Dict[int, Shift]] = None
) -> Tuple[Optional[AssignedEvent], Optional[OrphanEvent]]:
    """Assign one event; exactly one element of the returned pair is set."""
    if event.timestamp is None:
        return None, _orphan(event, ORPHAN_INVALID_TIMESTAMP)

    if shift_index is None:
        shift_index = shift_resolver.index_shifts(shifts)

    stored = shift_index.get(event.shift_id) if event.shift_id is not None else None
    if stored is not None and shift_resolver.contains(stored, event.timestamp, now):
        handover = handover_shift(stored, event.timestamp, shifts, now)
        if handover is None:
            return AssignedEvent(event=event, shift_id=stored.id), None
        logger.debug(
            f"{event.label}: {event.timestamp.isoformat()} is the end of shift "
            f"{stored.id}, using shift {handover.id}"
        )
        return AssignedEvent(event=event, shift_id=handover.id, reassigned=True), None

    resolved = shift_resolver.resolve(shifts, event.timestamp, now)
    if resolved is None:
        return None, _orphan(event, ORPHAN_NO_CONTAINING_SHIFT)

    if event.shift_id is not None:
        logger.debug(
            f"{event.label}: stored shift {event.shift_id} does not contain "
            f"{event.timestamp.isoformat()}, using shift {resolved.id}"
        )
    return AssignedEvent(
        event=event,
        shift_id=resolved.id,
        reassigned=event.shift_id is not None,
    ), None


def assign(events: List[Event], shifts: List[Shift], now: datetime) -> AssignmentResult:
    """
    Assign each event to its containing shift.

    Args:
        events: Events in any order (not modified)
        shifts: Known shifts in any order
        now: Evaluation instant bounding open shifts

    Returns:
        AssignmentResult with assigned views (input order kept) and orphans
    """
    result = AssignmentResult()
    shift_index = shift_resolver.index_shifts(shifts)

    for event in events:
        assigned, orphan = assign_event(event, shifts, now, shift_index)
        if assigned is not None:
            result.assigned.append(assigned)
        else:
            result.orphans.append(orphan)

    if result.orphans:
        logger.warning(
            f"{len(result.orphans)} of {len(events)} events could not be "
            f"assigned to a shift"
        )
    logger.info(
        f"Assigned {len(result.assigned)} events "
        f"({len(result.reassigned)} reassigned, {len(result.orphans)} orphaned)"
    )
    return result


def group_by_asset_and_shift(
    assigned: List[AssignedEvent]
) -> "OrderedDict[Tuple[int, int], List[Event]]":
    """Group assigned events by (asset_id, shift_id), keeping input order."""
    groups: "OrderedDict[Tuple[int, int], List[Event]]" = OrderedDict()
    for item in assigned:
        groups.setdefault((item.event.asset_id, item.shift_id), []).append(item.event)
    return groups
