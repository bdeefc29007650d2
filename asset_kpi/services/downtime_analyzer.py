"""
Downtime analysis over reconstructed intervals.

Buckets full stops by length, builds a downtime-by-reason pareto and the
time share of each asset state. Micro-stops are not part of the stop
buckets or the pareto; they are reported by the metrics aggregator.
"""

from typing import Dict, List
import logging

import numpy as np
import pandas as pd

from asset_kpi.models.event import AssetState
from asset_kpi.models.kpi import DowntimeAnalysis, ReasonDowntime, StateInterval

logger = logging.getLogger(__name__)

UNSPECIFIED_REASON = "Unspecified"

# (minimum availability percent, label), checked in order
PERFORMANCE_LEVELS = [
    (90.0, "Excellent"),
    (80.0, "Good"),
    (70.0, "Fair"),
]
DEFAULT_PERFORMANCE_LEVEL = "Poor"


def performance_level(availability_percent: float) -> str:
    """Excellent >= 90, Good >= 80, Fair >= 70, otherwise Poor."""
    for minimum, label in PERFORMANCE_LEVELS:
        if availability_percent >= minimum:
            return label
    return DEFAULT_PERFORMANCE_LEVEL


def intervals_to_frame(intervals: List[StateInterval]) -> pd.DataFrame:
    """One row per interval: state, stop_reason, start, end, duration_seconds."""
    columns = ["state", "stop_reason", "start", "end", "duration_seconds"]
    if not intervals:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([
        {
            "state": interval.state.value,
            "stop_reason": interval.stop_reason,
            "start": interval.start,
            "end": interval.end,
            "duration_seconds": interval.duration_seconds,
        }
        for interval in intervals
    ], columns=columns)


def reason_pareto(stops: pd.DataFrame) -> List[ReasonDowntime]:
    """
    Downtime per stop reason, largest first, with cumulative share.

    Args:
        stops: Frame of full-stop intervals (stop_reason, duration_seconds)

    Returns:
        ReasonDowntime rows; percentages are 0-100
    """
    if stops.empty:
        return []

    frame = stops.assign(
        reason=stops["stop_reason"].fillna(UNSPECIFIED_REASON).replace("", UNSPECIFIED_REASON)
    )
    agg = (
        frame.groupby("reason", as_index=False)
        .agg(downtime_seconds=("duration_seconds", "sum"), count=("duration_seconds", "size"))
        .sort_values(["downtime_seconds", "reason"], ascending=[False, True])
    )
    total = agg["downtime_seconds"].sum()
    agg["percentage"] = agg["downtime_seconds"] / total * 100 if total > 0 else 0.0
    agg["cumulative_percentage"] = agg["percentage"].cumsum()

    return [
        ReasonDowntime(
            reason=str(row["reason"]),
            downtime_seconds=float(row["downtime_seconds"]),
            count=int(row["count"]),
            percentage=float(row["percentage"]),
            cumulative_percentage=float(row["cumulative_percentage"]),
        )
        for row in agg.to_dict(orient="records")
    ]


def state_distribution(frame: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """Seconds and percentage of the window spent in each state."""
    seconds = frame.groupby("state")["duration_seconds"].sum() if not frame.empty else pd.Series(dtype=float)
    total = float(seconds.sum())

    distribution = {}
    for state in AssetState:
        value = float(seconds.get(state.value, 0.0))
        distribution[state.value] = {
            "seconds": value,
            "percentage": value / total * 100 if total > 0 else 0.0,
        }
    return distribution


def analyze(
    intervals: List[StateInterval],
    microstop_threshold_seconds: float,
    short_stop_threshold_seconds: float = 300,
    long_stop_threshold_seconds: float = 1800
) -> DowntimeAnalysis:
    """
    Build the downtime analysis of one interval sequence.

    Logic:
    1. Full stops are STOPPED intervals at or above the micro-stop threshold
    2. short: < short threshold, long: >= long threshold, medium: the rest
    3. Pareto and averages are over full stops only

    Args:
        intervals: Interval sequence of one window
        microstop_threshold_seconds: Asset micro-stop threshold
        short_stop_threshold_seconds: Upper bound (exclusive) of short stops
        long_stop_threshold_seconds: Lower bound (inclusive) of long stops

    Returns:
        DowntimeAnalysis
    """
    if long_stop_threshold_seconds < short_stop_threshold_seconds:
        raise ValueError(
            f"long_stop_threshold_seconds ({long_stop_threshold_seconds}) must not be "
            f"below short_stop_threshold_seconds ({short_stop_threshold_seconds})"
        )

    frame = intervals_to_frame(intervals)
    analysis = DowntimeAnalysis(state_distribution=state_distribution(frame))
    if frame.empty:
        return analysis

    stops = frame[
        (frame["state"] == AssetState.STOPPED.value)
        & (frame["duration_seconds"] >= microstop_threshold_seconds)
    ]
    if stops.empty:
        return analysis

    durations = stops["duration_seconds"].to_numpy(dtype=float)
    buckets = np.select(
        [durations < short_stop_threshold_seconds, durations >= long_stop_threshold_seconds],
        ["short", "long"],
        default="medium",
    )

    analysis.short_stops = int(np.count_nonzero(buckets == "short"))
    analysis.long_stops = int(np.count_nonzero(buckets == "long"))
    analysis.medium_stops = int(np.count_nonzero(buckets == "medium"))
    analysis.longest_stop_seconds = float(durations.max())
    analysis.average_stop_seconds = float(durations.mean())
    analysis.downtime_by_reason = reason_pareto(stops)

    logger.debug(
        f"Downtime analysis: {len(stops)} full stops "
        f"({analysis.short_stops} short, {analysis.medium_stops} medium, "
        f"{analysis.long_stops} long)"
    )
    return analysis
