"""
Reliability metrics (MTBF / MTTR) from full-stop intervals.

MTTR = mean duration of full stops (micro-stops excluded).
MTBF = mean RUNNING time between the end of one full stop and the start of
the next. At least two full stops are needed; otherwise both metrics are 0
and the result carries an insufficient-data reason.
"""

from typing import List
import logging

from asset_kpi.models.event import AssetState
from asset_kpi.models.kpi import ReliabilityResult, StateInterval
from asset_kpi.services.metrics_aggregator import is_full_stop

logger = logging.getLogger(__name__)

MIN_FULL_STOPS = 2


def reliability(
    intervals: List[StateInterval],
    microstop_threshold_seconds: float
) -> ReliabilityResult:
    """
    Compute MTBF and MTTR for one interval sequence.

    Args:
        intervals: Ordered interval sequence of one window
        microstop_threshold_seconds: Threshold separating micro-stops from full stops

    Returns:
        ReliabilityResult
    """
    stop_positions = [
        index for index, interval in enumerate(intervals)
        if is_full_stop(interval, microstop_threshold_seconds)
    ]
    full_stops = len(stop_positions)

    if full_stops < MIN_FULL_STOPS:
        reason = (
            f"insufficient data: {full_stops} full stop"
            f"{'' if full_stops == 1 else 's'} in window, {MIN_FULL_STOPS} required"
        )
        logger.debug(reason)
        return ReliabilityResult(
            full_stop_count=full_stops,
            insufficient_data=True,
            reason=reason,
        )

    repair_times = [intervals[i].duration_seconds for i in stop_positions]
    mttr = sum(repair_times) / full_stops

    uptimes = []
    for previous, current in zip(stop_positions, stop_positions[1:]):
        uptimes.append(sum(
            interval.duration_seconds
            for interval in intervals[previous + 1:current]
            if interval.state == AssetState.RUNNING
        ))
    mtbf = sum(uptimes) / len(uptimes)

    return ReliabilityResult(
        mtbf_seconds=mtbf,
        mttr_seconds=mttr,
        full_stop_count=full_stops,
    )
