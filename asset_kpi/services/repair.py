"""
Repair proposals for stored event data.

These entry points only propose corrections; they never change an event.
The host reviews the proposals and applies the accepted ones through its
own write path.

Logic:
1. Shift reassignment: stored shift_id missing, unknown or not containing
   the timestamp, while some shift does contain it; events stamped exactly
   at a handover move to the shift starting then
2. Timestamp correction:
   - manual_review for missing/unparseable timestamps (no value is invented)
   - clamp_to_shift for events just outside their stored shift (clock skew)
   - normalize_format for parseable timestamps stored in another text form
"""

from datetime import datetime, timedelta
from typing import List
import logging

from asset_kpi.models.event import Event, Shift
from asset_kpi.models.repair import RepairAction, RepairKind, RepairProposal
from asset_kpi.services import shift_resolver
from asset_kpi.services.event_assignment import handover_shift
from asset_kpi.services.event_normalizer import to_utc_event, to_utc_shift
from asset_kpi.utils.timeutils import canonical_timestamp, ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_CLOCK_SKEW_TOLERANCE_SECONDS = 60

# Late events are clamped this far before the shift end, which itself
# belongs to the next shift
CLAMP_BEFORE_END = timedelta(seconds=1)


def propose_shift_reassignments(
    events: List[Event],
    shifts: List[Shift],
    now: datetime
) -> List[RepairProposal]:
    """
    Propose shift_id corrections.

    Args:
        events: Stored events
        shifts: Known shifts
        now: Evaluation instant bounding open shifts

    Returns:
        One proposal per event whose stored shift_id should change. Events
        without a timestamp or without any containing shift get none.
    """
    now = ensure_utc(now)
    shifts = [to_utc_shift(s) for s in shifts]
    shift_index = shift_resolver.index_shifts(shifts)
    proposals: List[RepairProposal] = []

    for event in (to_utc_event(e) for e in events):
        if event.timestamp is None:
            continue

        stored = shift_index.get(event.shift_id) if event.shift_id is not None else None
        at_handover = False
        if stored is not None and shift_resolver.contains(stored, event.timestamp, now):
            resolved = handover_shift(stored, event.timestamp, shifts, now)
            if resolved is None:
                continue
            at_handover = True
        else:
            resolved = shift_resolver.resolve(shifts, event.timestamp, now)
        if resolved is None:
            continue

        if event.shift_id is None:
            action, reason = RepairAction.ASSIGN_SHIFT, "shift_id is missing"
        elif stored is None:
            action, reason = RepairAction.REPLACE_SHIFT, f"shift {event.shift_id} does not exist"
        elif at_handover:
            action = RepairAction.REPLACE_SHIFT
            reason = f"{event.timestamp.isoformat()} is the end of shift {event.shift_id}"
        else:
            action = RepairAction.REPLACE_SHIFT
            reason = f"shift {event.shift_id} does not contain {event.timestamp.isoformat()}"

        proposals.append(RepairProposal(
            event_id=event.id,
            asset_id=event.asset_id,
            kind=RepairKind.SHIFT_REASSIGNMENT,
            action=action,
            current_shift_id=event.shift_id,
            proposed_shift_id=resolved.id,
            current_timestamp=event.raw_timestamp,
            proposed_timestamp=None,
            reason=f"{reason}; contained in shift {resolved.id}",
        ))

    logger.info(f"Proposed {len(proposals)} shift reassignments for {len(events)} events")
    return proposals


def propose_timestamp_corrections(
    events: List[Event],
    shifts: List[Shift],
    now: datetime,
    tolerance_seconds: float = DEFAULT_CLOCK_SKEW_TOLERANCE_SECONDS
) -> List[RepairProposal]:
    """
    Propose timestamp corrections, at most one per event.

    Args:
        events: Stored events
        shifts: Known shifts
        now: Evaluation instant bounding open shifts
        tolerance_seconds: Largest distance outside the stored shift that is
            treated as clock skew

    Returns:
        List of RepairProposal
    """
    if tolerance_seconds < 0:
        raise ValueError("tolerance_seconds must not be negative")

    now = ensure_utc(now)
    shift_index = shift_resolver.index_shifts(to_utc_shift(s) for s in shifts)
    tolerance = timedelta(seconds=tolerance_seconds)
    proposals: List[RepairProposal] = []

    for event in (to_utc_event(e) for e in events):
        stored = shift_index.get(event.shift_id) if event.shift_id is not None else None

        if event.timestamp is None:
            proposal = RepairProposal(
                event_id=event.id,
                asset_id=event.asset_id,
                kind=RepairKind.TIMESTAMP_CORRECTION,
                action=RepairAction.MANUAL_REVIEW,
                current_shift_id=event.shift_id,
                current_timestamp=event.raw_timestamp,
                proposed_timestamp=None,
                reason=(
                    "timestamp is missing" if event.raw_timestamp is None
                    else f"timestamp {event.raw_timestamp!r} cannot be parsed"
                ),
            )
            if stored is not None:
                proposal.bound_start, proposal.bound_end = shift_resolver.shift_window(stored, now)
            proposals.append(proposal)
            continue

        if stored is not None and not shift_resolver.contains(stored, event.timestamp, now):
            start, end = shift_resolver.shift_window(stored, now)
            if event.timestamp < start:
                distance, target = start - event.timestamp, start
            else:
                distance, target = event.timestamp - end, max(start, end - CLAMP_BEFORE_END)
            if end > start and distance <= tolerance:
                proposals.append(RepairProposal(
                    event_id=event.id,
                    asset_id=event.asset_id,
                    kind=RepairKind.TIMESTAMP_CORRECTION,
                    action=RepairAction.CLAMP_TO_SHIFT,
                    current_shift_id=event.shift_id,
                    proposed_shift_id=event.shift_id,
                    current_timestamp=event.raw_timestamp or canonical_timestamp(event.timestamp),
                    proposed_timestamp=target,
                    bound_start=start,
                    bound_end=end,
                    reason=(
                        f"{distance.total_seconds():.0f}s outside "
                        f"shift {stored.id}, within clock-skew tolerance"
                    ),
                ))
                continue

        if event.raw_timestamp is not None:
            canonical = canonical_timestamp(event.timestamp)
            if event.raw_timestamp.strip() != canonical:
                proposals.append(RepairProposal(
                    event_id=event.id,
                    asset_id=event.asset_id,
                    kind=RepairKind.TIMESTAMP_CORRECTION,
                    action=RepairAction.NORMALIZE_FORMAT,
                    current_shift_id=event.shift_id,
                    current_timestamp=event.raw_timestamp,
                    proposed_timestamp=event.timestamp,
                    reason=f"stored as {event.raw_timestamp!r}, canonical form is {canonical}",
                ))

    manual = sum(1 for p in proposals if p.action == RepairAction.MANUAL_REVIEW)
    if manual:
        logger.warning(f"{manual} events need a manually supplied timestamp")
    logger.info(f"Proposed {len(proposals)} timestamp corrections for {len(events)} events")
    return proposals
