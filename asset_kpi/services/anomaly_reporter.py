"""
Anomaly collection for one engine invocation.

Nothing here raises: malformed or suspicious input is recorded and
returned beside the KPI reports so the host can decide what to do.
"""

from typing import List, Optional
import logging

from asset_kpi.models.event import Event
from asset_kpi.models.kpi import (
    AnomalyReport,
    DroppedEvent,
    MalformedRecord,
    OrphanEvent,
    StateMismatch,
    WindowRef,
)
from asset_kpi.services.event_assignment import ORPHAN_INVALID_TIMESTAMP
from asset_kpi.services.timeline import TimelineResult

logger = logging.getLogger(__name__)


class AnomalyReporter:
    """Accumulates diagnostics while the engine runs."""

    def __init__(self):
        self.orphans: List[OrphanEvent] = []
        self.malformed: List[MalformedRecord] = []
        self.invalid_shift_ids: List[int] = []
        self.inferred_start_windows: List[WindowRef] = []
        self.zero_event_windows: List[WindowRef] = []
        self.dropped_events: List[DroppedEvent] = []
        self.state_mismatches: List[StateMismatch] = []
        self.reassigned_event_ids: List[Optional[int]] = []

    def add_orphans(self, orphans: List[OrphanEvent]) -> None:
        self.orphans.extend(orphans)

    def add_malformed(self, records: List[MalformedRecord]) -> None:
        self.malformed.extend(records)

    def add_invalid_shift(self, shift_id: int, detail: Optional[str] = None) -> None:
        if shift_id in self.invalid_shift_ids:
            return
        self.invalid_shift_ids.append(shift_id)
        self.malformed.append(MalformedRecord(
            record_type="shift",
            record_id=shift_id,
            reason="invalid_shift",
            detail=detail,
        ))

    def add_reassigned(self, event_ids: List[Optional[int]]) -> None:
        self.reassigned_event_ids.extend(event_ids)

    def add_timeline(self, timeline: TimelineResult) -> None:
        """Record what one reconstruction had to infer, drop or distrust."""
        window = timeline.window
        ref = WindowRef(
            asset_id=timeline.asset_id,
            shift_id=window.shift_id,
            window_start=window.start,
            window_end=window.end,
        )
        if timeline.no_data:
            self.zero_event_windows.append(ref)
        elif timeline.inferred_start:
            self.inferred_start_windows.append(ref.model_copy(
                update={"detail": f"seeded {timeline.seed_state.value} from {timeline.seed_source}"}
            ))

        for event in timeline.dropped:
            self.dropped_events.append(self._dropped(event, timeline))
        self.state_mismatches.extend(timeline.state_mismatches)

    @staticmethod
    def _dropped(event: Event, timeline: TimelineResult) -> DroppedEvent:
        return DroppedEvent(
            event_id=event.id,
            asset_id=timeline.asset_id,
            shift_id=timeline.window.shift_id,
            timestamp=event.timestamp,
        )

    def build(self) -> AnomalyReport:
        invalid_ts = [o for o in self.orphans if o.reason == ORPHAN_INVALID_TIMESTAMP]
        report = AnomalyReport(
            orphan_count=len(self.orphans),
            orphans=list(self.orphans),
            invalid_timestamp_count=len(invalid_ts),
            invalid_timestamp_event_ids=[o.event_id for o in invalid_ts],
            malformed_records=list(self.malformed),
            invalid_shift_ids=list(self.invalid_shift_ids),
            inferred_start_windows=list(self.inferred_start_windows),
            zero_event_windows=list(self.zero_event_windows),
            dropped_events=list(self.dropped_events),
            state_mismatches=list(self.state_mismatches),
            reassigned_event_ids=list(self.reassigned_event_ids),
        )
        if report.has_anomalies:
            logger.info(
                f"Anomalies: {report.orphan_count} orphans, "
                f"{len(report.malformed_records)} malformed records, "
                f"{len(report.inferred_start_windows)} inferred starts, "
                f"{len(report.zero_event_windows)} zero-event windows, "
                f"{len(report.dropped_events)} dropped events"
            )
        return report
