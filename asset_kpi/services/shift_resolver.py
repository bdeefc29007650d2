"""
Shift window resolution.

Finds the shift whose time window contains a timestamp. Open shifts end at
the evaluation instant supplied by the caller; the resolver never reads the
wall clock.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from asset_kpi.models.event import Shift, ShiftStatus

logger = logging.getLogger(__name__)


def shift_window(shift: Shift, now: datetime) -> Tuple[datetime, datetime]:
    """Return (start_time, effective_end) of a shift at instant `now`."""
    return shift.start_time, shift.effective_end(now)


def contains(shift: Shift, timestamp: datetime, now: datetime) -> bool:
    """
    True if `timestamp` lies in [start_time, effective_end] of a valid shift.

    Inclusive at the end so a handover instant matches both shifts; resolve()
    then prefers the later one. Timelines themselves stop before the end.
    """
    start, end = shift_window(shift, now)
    if end <= start:
        return False
    return start <= timestamp <= end


def find_shift(shifts: Iterable[Shift], shift_id: Optional[int]) -> Optional[Shift]:
    if shift_id is None:
        return None
    for shift in shifts:
        if shift.id == shift_id:
            return shift
    return None


def index_shifts(shifts: Iterable[Shift]) -> Dict[int, Shift]:
    """Shift lookup by ID; the first definition of a duplicated ID wins."""
    index: Dict[int, Shift] = {}
    for shift in shifts:
        index.setdefault(shift.id, shift)
    return index


def resolve(
    shifts: List[Shift],
    timestamp: datetime,
    now: datetime
) -> Optional[Shift]:
    """
    Find the shift containing `timestamp`.

    Among the containing shifts the one with the latest start_time wins;
    ties go to the active shift, then to input order.

    Args:
        shifts: Candidate shifts (any order)
        timestamp: Event instant
        now: Evaluation instant bounding open shifts

    Returns:
        The containing Shift, or None if no shift qualifies
    """
    best: Optional[Shift] = None
    for shift in shifts:
        if not contains(shift, timestamp, now):
            continue
        if best is None or shift.start_time > best.start_time:
            best = shift
        elif (
            shift.start_time == best.start_time
            and shift.status == ShiftStatus.ACTIVE
            and best.status != ShiftStatus.ACTIVE
        ):
            best = shift

    if best is None:
        logger.debug(f"No shift contains {timestamp.isoformat()}")
    return best
