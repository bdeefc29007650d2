"""
Pydantic models for the asset KPI engine.

This module exports the input records (events, shifts, assets), the derived
timeline/KPI outputs and the repair proposal models.
"""

from .event import (
    # Enums
    EventType,
    AssetState,
    ShiftStatus,
    # Input records
    Event,
    Shift,
    Asset,
    ProductionFactors,
)

from .kpi import (
    StateInterval,
    PartialKPI,
    ReliabilityResult,
    OEEResult,
    ReasonDowntime,
    DowntimeAnalysis,
    KPIReport,
    AggregateKPIReport,
    OrphanEvent,
    MalformedRecord,
    WindowRef,
    DroppedEvent,
    StateMismatch,
    AnomalyReport,
    KPIComputation,
)

from .repair import (
    RepairKind,
    RepairAction,
    RepairProposal,
)

__all__ = [
    # Enums
    "EventType",
    "AssetState",
    "ShiftStatus",
    # Input records
    "Event",
    "Shift",
    "Asset",
    "ProductionFactors",
    # Derived outputs
    "StateInterval",
    "PartialKPI",
    "ReliabilityResult",
    "OEEResult",
    "ReasonDowntime",
    "DowntimeAnalysis",
    "KPIReport",
    "AggregateKPIReport",
    "KPIComputation",
    # Diagnostics
    "OrphanEvent",
    "MalformedRecord",
    "WindowRef",
    "DroppedEvent",
    "StateMismatch",
    "AnomalyReport",
    # Repairs
    "RepairKind",
    "RepairAction",
    "RepairProposal",
]
