"""
Services for shift resolution, timeline reconstruction and KPI calculation.
"""

from .event_normalizer import MalformedRecordError, parse_event_records, parse_shift_records
from .timeline import ShiftWindow, TimelineIntegrityError, merge_intervals, reconstruct
from .kpi_engine import KPIEngine
from .repair import propose_shift_reassignments, propose_timestamp_corrections

__all__ = [
    "MalformedRecordError",
    "parse_event_records",
    "parse_shift_records",
    "ShiftWindow",
    "TimelineIntegrityError",
    "merge_intervals",
    "reconstruct",
    "KPIEngine",
    "propose_shift_reassignments",
    "propose_timestamp_corrections",
]
