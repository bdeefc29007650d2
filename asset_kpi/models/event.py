"""
Pydantic models for asset events, shifts and assets.

These are the input records of the KPI engine. They are supplied by the
host's persistence layer and are never mutated by the engine.
"""

from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# ENUMS (matching the event/shift/asset columns of the source system)
# =============================================================================

class EventType(str, Enum):
    """Closed set of event tags emitted by asset loggers."""
    STATE_CHANGE = "STATE_CHANGE"
    STOP_START = "STOP_START"
    STOP_END = "STOP_END"
    MICRO_STOP = "MICRO_STOP"
    SHIFT_START = "SHIFT_START"
    SHIFT_END = "SHIFT_END"
    MAINTENANCE_START = "MAINTENANCE_START"
    MAINTENANCE_END = "MAINTENANCE_END"
    ERROR = "ERROR"
    HEARTBEAT = "HEARTBEAT"


class AssetState(str, Enum):
    """Operational state of an asset."""
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"
    MAINTENANCE = "MAINTENANCE"


class ShiftStatus(str, Enum):
    """Shift lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# INPUT RECORDS
# =============================================================================

class Event(BaseModel):
    """
    A single timestamped asset event.

    `timestamp` is None when the source value was missing or could not be
    parsed; the stored text is kept in `raw_timestamp` so the event can be
    reported and repaired instead of being given an invented time.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(None, description="Source event ID")
    asset_id: int = Field(..., description="Asset that emitted the event")
    timestamp: Optional[datetime] = Field(
        None, description="Timezone-aware event instant (None if invalid)"
    )
    raw_timestamp: Optional[str] = Field(
        None, description="Timestamp exactly as stored upstream"
    )
    event_type: EventType
    previous_state: Optional[AssetState] = None
    new_state: Optional[AssetState] = None
    duration: Optional[float] = Field(
        None, ge=0, description="Duration in seconds (authoritative when set)"
    )
    stop_reason: Optional[str] = None
    shift_id: Optional[int] = Field(None, description="Stored shift foreign key")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        """Identifier used in diagnostics."""
        return f"event {self.id}" if self.id is not None else f"{self.event_type.value} event"


class Shift(BaseModel):
    """
    A production shift.

    `end_time` is None while the shift is open; its effective end is then the
    evaluation instant supplied by the caller.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    status: ShiftStatus = ShiftStatus.COMPLETED

    def effective_end(self, now: datetime) -> datetime:
        """min(now, end_time) for closed shifts, `now` for open ones."""
        if self.end_time is None:
            return now
        return min(now, self.end_time)

    def is_valid_window(self, now: datetime) -> bool:
        return self.effective_end(now) > self.start_time


class Asset(BaseModel):
    """Monitored equipment and its classification thresholds."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: Optional[str] = None
    current_state: AssetState = AssetState.STOPPED
    microstop_threshold: float = Field(
        180, gt=0, description="STOPPED intervals shorter than this are micro-stops"
    )
    short_stop_threshold: float = Field(300, gt=0, description="Short stop threshold in seconds")
    long_stop_threshold: float = Field(1800, gt=0, description="Long stop threshold in seconds")


class ProductionFactors(BaseModel):
    """
    Performance and quality supplied by production-count / inspection data.

    Either factor may be omitted; the OEE calculator then uses 1.0 and marks
    the factor as not measured.
    """

    performance: Optional[float] = Field(None, ge=0, le=1)
    quality: Optional[float] = Field(None, ge=0, le=1)
