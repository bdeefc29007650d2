"""
OEE calculation.

OEE = Availability × Performance × Quality, each a fraction in [0, 1].
Performance and quality come from production-count and inspection data
outside this engine; when absent they default to 1.0 and are marked as not
measured.
"""

from typing import Optional

from asset_kpi.models.kpi import OEEResult


def availability(runtime_seconds: float, downtime_seconds: float) -> float:
    """runtime / (runtime + downtime), 0 when both are 0."""
    total = runtime_seconds + downtime_seconds
    if total <= 0:
        return 0.0
    return runtime_seconds / total


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


def oee(
    availability: float,
    performance: Optional[float] = None,
    quality: Optional[float] = None,
    default_performance: float = 1.0,
    default_quality: float = 1.0
) -> OEEResult:
    """
    Combine the three OEE factors.

    Raises:
        ValueError: if any factor lies outside [0, 1]
    """
    performance_measured = performance is not None
    quality_measured = quality is not None
    if performance is None:
        performance = default_performance
    if quality is None:
        quality = default_quality

    _check_fraction("availability", availability)
    _check_fraction("performance", performance)
    _check_fraction("quality", quality)

    return OEEResult(
        availability=availability,
        performance=performance,
        quality=quality,
        oee=availability * performance * quality,
        performance_measured=performance_measured,
        quality_measured=quality_measured,
    )
