"""
Pydantic models for derived timeline and KPI outputs.

Nothing here is persisted by the engine. Every model serializes with
`model_dump(mode="json")` so the host can return it from its own API.
"""

from datetime import datetime
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, Field, ConfigDict, computed_field

from asset_kpi.models.event import AssetState


SECONDS_PER_HOUR = 3600.0


class StateInterval(BaseModel):
    """A contiguous span of one asset state inside a shift window."""

    model_config = ConfigDict(frozen=True)

    asset_id: int
    shift_id: Optional[int] = None
    state: AssetState
    start: datetime
    end: datetime
    stop_reason: Optional[str] = None
    source_event_id: Optional[int] = Field(
        None, description="Event that opened this interval (None for the seeded start)"
    )
    is_micro_stop_event: bool = Field(
        False, description="Carved out by an explicit MICRO_STOP event"
    )
    event_ids: List[int] = Field(default_factory=list)

    @computed_field
    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class PartialKPI(BaseModel):
    """Seconds-based accumulation over one interval sequence."""

    window_seconds: float = 0.0
    runtime_seconds: float = 0.0
    downtime_seconds: float = Field(0.0, description="Full-stop STOPPED time only")
    micro_stop_seconds: float = 0.0
    error_seconds: float = 0.0
    maintenance_seconds: float = 0.0
    total_stops: int = 0
    micro_stops: int = 0
    error_intervals: int = 0
    maintenance_intervals: int = 0
    stop_frequency_per_hour: float = 0.0
    micro_stop_percentage: float = 0.0

    @property
    def total_downtime_seconds(self) -> float:
        """Every non-running second: full stops, micro-stops, errors, maintenance."""
        return (
            self.downtime_seconds
            + self.micro_stop_seconds
            + self.error_seconds
            + self.maintenance_seconds
        )

    @property
    def downtime_by_bucket(self) -> Dict[str, float]:
        return {
            "stopped": self.downtime_seconds,
            "micro_stop": self.micro_stop_seconds,
            "error": self.error_seconds,
            "maintenance": self.maintenance_seconds,
        }


class ReliabilityResult(BaseModel):
    """MTBF / MTTR over full stops of one window."""

    mtbf_seconds: float = 0.0
    mttr_seconds: float = 0.0
    full_stop_count: int = 0
    insufficient_data: bool = False
    reason: Optional[str] = None

    @computed_field
    @property
    def mtbf_hours(self) -> float:
        return self.mtbf_seconds / SECONDS_PER_HOUR

    @computed_field
    @property
    def mttr_hours(self) -> float:
        return self.mttr_seconds / SECONDS_PER_HOUR


class OEEResult(BaseModel):
    """OEE and its three factors as fractions in [0, 1]."""

    availability: float
    performance: float
    quality: float
    oee: float
    performance_measured: bool
    quality_measured: bool

    @computed_field
    @property
    def oee_percentage(self) -> float:
        return self.oee * 100


class ReasonDowntime(BaseModel):
    """One row of the downtime-by-reason pareto."""

    reason: str
    downtime_seconds: float
    count: int
    percentage: float
    cumulative_percentage: float


class DowntimeAnalysis(BaseModel):
    """Stop-length buckets, reason pareto and state distribution."""

    short_stops: int = 0
    medium_stops: int = 0
    long_stops: int = 0
    longest_stop_seconds: float = 0.0
    average_stop_seconds: float = 0.0
    downtime_by_reason: List[ReasonDowntime] = Field(default_factory=list)
    state_distribution: Dict[str, Dict[str, float]] = Field(default_factory=dict)


class KPIReport(BaseModel):
    """KPIs of one asset over one shift or time window."""

    asset_id: int
    asset_name: Optional[str] = None
    shift_id: Optional[int] = None
    window_start: datetime
    window_end: datetime
    window_hours: float

    overall_availability: float = Field(..., description="Percent")
    total_runtime_hours: float
    total_downtime_hours: float = Field(
        ..., description="Full stops plus error and maintenance time"
    )
    total_stops: int
    stop_frequency_per_hour: float
    micro_stops: int
    micro_stop_time_hours: float
    micro_stop_percentage: float
    error_time_hours: float
    maintenance_time_hours: float
    avg_mtbf_hours: float
    avg_mttr_hours: float

    oee_percentage: float
    availability_factor: float
    performance_factor: float
    quality_factor: float
    performance_measured: bool
    quality_measured: bool
    performance_level: str

    no_data: bool = False
    inferred_start_state: bool = False
    reliability_insufficient_data: bool = False
    reliability_reason: Optional[str] = None
    event_count: int = 0

    downtime: DowntimeAnalysis = Field(default_factory=DowntimeAnalysis)
    intervals: List[StateInterval] = Field(default_factory=list)


class AggregateKPIReport(BaseModel):
    """Headline KPIs over every report of one invocation."""

    report_count: int = 0
    asset_count: int = 0
    overall_availability: float = 0.0
    total_runtime_hours: float = 0.0
    total_downtime_hours: float = 0.0
    total_stops: int = 0
    stop_frequency_per_hour: float = 0.0
    micro_stops: int = 0
    micro_stop_time_hours: float = 0.0
    micro_stop_percentage: float = 0.0
    avg_mtbf_hours: float = 0.0
    avg_mttr_hours: float = 0.0
    oee_percentage: float = 0.0
    performance_level: str = "Poor"
    no_data_reports: int = 0


class OrphanEvent(BaseModel):
    """An event that could not be placed in any shift window."""

    event_id: Optional[int] = None
    asset_id: int
    timestamp: Optional[datetime] = None
    raw_timestamp: Optional[str] = None
    stored_shift_id: Optional[int] = None
    reason: str


class MalformedRecord(BaseModel):
    """An input row rejected before reconstruction."""

    record_type: str = Field(..., description="'event' or 'shift'")
    record_id: Optional[Any] = None
    reason: str
    detail: Optional[str] = None


class WindowRef(BaseModel):
    """Identifies one (asset, shift) reconstruction window."""

    asset_id: int
    shift_id: Optional[int] = None
    window_start: datetime
    window_end: datetime
    detail: Optional[str] = None


class DroppedEvent(BaseModel):
    """An assigned event that lay outside its window at reconstruction time."""

    event_id: Optional[int] = None
    asset_id: int
    shift_id: Optional[int] = None
    timestamp: datetime
    reason: str = "outside_window"


class StateMismatch(BaseModel):
    """An event whose previous_state disagrees with the reconstructed state."""

    event_id: Optional[int] = None
    asset_id: int
    shift_id: Optional[int] = None
    timestamp: datetime
    expected_state: AssetState
    reported_state: AssetState


class AnomalyReport(BaseModel):
    """Diagnostics returned beside the KPI reports of one invocation."""

    orphan_count: int = 0
    orphans: List[OrphanEvent] = Field(default_factory=list)
    invalid_timestamp_count: int = 0
    invalid_timestamp_event_ids: List[Optional[int]] = Field(default_factory=list)
    malformed_records: List[MalformedRecord] = Field(default_factory=list)
    invalid_shift_ids: List[int] = Field(default_factory=list)
    inferred_start_windows: List[WindowRef] = Field(default_factory=list)
    zero_event_windows: List[WindowRef] = Field(default_factory=list)
    dropped_events: List[DroppedEvent] = Field(default_factory=list)
    state_mismatches: List[StateMismatch] = Field(default_factory=list)
    reassigned_event_ids: List[Optional[int]] = Field(default_factory=list)

    @property
    def has_anomalies(self) -> bool:
        return bool(
            self.orphans
            or self.malformed_records
            or self.invalid_shift_ids
            or self.inferred_start_windows
            or self.zero_event_windows
            or self.dropped_events
            or self.state_mismatches
        )


class KPIComputation(BaseModel):
    """Complete result of one engine invocation."""

    evaluated_at: datetime
    reports: List[KPIReport] = Field(default_factory=list)
    aggregate: AggregateKPIReport = Field(default_factory=AggregateKPIReport)
    anomalies: AnomalyReport = Field(default_factory=AnomalyReport)
    processing_notes: List[str] = Field(default_factory=list)
