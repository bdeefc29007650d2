"""
Metrics aggregation over a reconstructed interval sequence.

Classification of each interval:
- RUNNING     -> runtime
- STOPPED     -> micro-stop if duration < threshold, otherwise a full stop
- ERROR       -> error bucket (downtime, not a stop)
- MAINTENANCE -> maintenance bucket (downtime, not a stop)

Each second of the window lands in exactly one bucket, so
runtime + downtime + micro_stop + error + maintenance == window.
"""

from typing import List, Optional
import logging

from asset_kpi.models.event import AssetState
from asset_kpi.models.kpi import PartialKPI, StateInterval, SECONDS_PER_HOUR

logger = logging.getLogger(__name__)


def is_micro_stop(interval: StateInterval, microstop_threshold_seconds: float) -> bool:
    """STOPPED and strictly shorter than the threshold."""
    return (
        interval.state == AssetState.STOPPED
        and interval.duration_seconds < microstop_threshold_seconds
    )


def is_full_stop(interval: StateInterval, microstop_threshold_seconds: float) -> bool:
    """STOPPED and at least as long as the threshold."""
    return (
        interval.state == AssetState.STOPPED
        and interval.duration_seconds >= microstop_threshold_seconds
    )


def aggregate(
    intervals: List[StateInterval],
    microstop_threshold_seconds: float,
    window_seconds: Optional[float] = None
) -> PartialKPI:
    """
    Accumulate runtime, downtime and stop counts.

    Args:
        intervals: Interval sequence of one window
        microstop_threshold_seconds: Asset micro-stop threshold
        window_seconds: Window length; defaults to the summed interval time

    Returns:
        PartialKPI (seconds-based). Ratios with a zero denominator are 0.
    """
    if microstop_threshold_seconds < 0:
        raise ValueError("microstop_threshold_seconds must not be negative")

    kpi = PartialKPI()

    for interval in intervals:
        duration = interval.duration_seconds
        if interval.state == AssetState.RUNNING:
            kpi.runtime_seconds += duration
        elif interval.state == AssetState.STOPPED:
            if duration < microstop_threshold_seconds:
                kpi.micro_stops += 1
                kpi.micro_stop_seconds += duration
            else:
                kpi.total_stops += 1
                kpi.downtime_seconds += duration
        elif interval.state == AssetState.ERROR:
            kpi.error_intervals += 1
            kpi.error_seconds += duration
        elif interval.state == AssetState.MAINTENANCE:
            kpi.maintenance_intervals += 1
            kpi.maintenance_seconds += duration

    if window_seconds is None:
        window_seconds = sum(i.duration_seconds for i in intervals)
    kpi.window_seconds = window_seconds

    window_hours = window_seconds / SECONDS_PER_HOUR
    kpi.stop_frequency_per_hour = kpi.total_stops / window_hours if window_hours > 0 else 0.0

    planned = kpi.runtime_seconds + kpi.total_downtime_seconds
    kpi.micro_stop_percentage = (
        kpi.micro_stop_seconds / planned * 100 if planned > 0 else 0.0
    )

    logger.debug(
        f"Aggregated {len(intervals)} intervals: runtime={kpi.runtime_seconds:.0f}s "
        f"downtime={kpi.downtime_seconds:.0f}s stops={kpi.total_stops} "
        f"micro_stops={kpi.micro_stops}"
    )
    return kpi
