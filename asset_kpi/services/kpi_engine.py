"""
KPI Engine - orchestrates timeline reconstruction and KPI calculation.

Pipeline of one invocation:
1. Normalize timestamps to UTC and set aside shifts with invalid windows
2. Assign events to shifts (orphans go to the anomaly report)
3. Reconstruct the timeline of every requested (asset, shift)
4. Aggregate runtime/downtime, reliability, OEE and downtime analysis
5. Build the cross-asset aggregate and the anomaly report

The engine is stateless: nothing is cached between calls and inputs are
never mutated.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import logging

from asset_kpi.models.event import Asset, Event, ProductionFactors, Shift
from asset_kpi.models.kpi import (
    AggregateKPIReport,
    KPIComputation,
    KPIReport,
    MalformedRecord,
    OrphanEvent,
)
from asset_kpi.models.repair import RepairProposal
from asset_kpi.services import event_assignment
from asset_kpi.services import oee as oee_calculator
from asset_kpi.services.anomaly_reporter import AnomalyReporter
from asset_kpi.services.event_normalizer import (
    parse_event_records,
    parse_shift_records,
    to_utc_event,
    to_utc_shift,
)
from asset_kpi.services.downtime_analyzer import analyze, performance_level
from asset_kpi.services.metrics_aggregator import aggregate
from asset_kpi.services.reliability import reliability
from asset_kpi.services.repair import propose_shift_reassignments, propose_timestamp_corrections
from asset_kpi.services.timeline import ShiftWindow, TimelineResult, merge_intervals, reconstruct
from asset_kpi.settings import EngineConfig
from asset_kpi.utils.timeutils import ensure_utc, to_hours

logger = logging.getLogger(__name__)

FactorsInput = Optional[Union[ProductionFactors, Dict[int, ProductionFactors]]]


class KPIEngine:
    """
    Computes per-asset, per-shift KPIs from raw events.

    Usage:
        engine = KPIEngine(EngineConfig.from_env())
        result = engine.compute(events, shifts, assets, now=datetime.now(timezone.utc))
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def compute(
        self,
        events: List[Event],
        shifts: List[Shift],
        assets: List[Asset],
        now: datetime,
        factors: FactorsInput = None,
        shift_ids: Optional[List[int]] = None,
        malformed: Optional[List[MalformedRecord]] = None
    ) -> KPIComputation:
        """
        Compute KPI reports for every (asset, shift) pair.

        Args:
            events: Raw events of any assets, any order
            shifts: Known shifts
            assets: Assets to report on; each gets a report per requested
                shift even without events. Assets with events but not listed
                are reported with default thresholds.
            now: Evaluation instant (naive values are taken as UTC)
            factors: ProductionFactors for all assets, or a dict per asset_id
            shift_ids: Shifts to report on (default: every valid shift)
            malformed: Rows rejected while normalizing the inputs, carried
                into the anomaly report

        Returns:
            KPIComputation with reports, aggregate and anomalies

        Raises:
            TimelineIntegrityError: if any reconstruction breaks the interval contract
        """
        now = ensure_utc(now)
        reporter = AnomalyReporter()
        reporter.add_malformed(malformed or [])
        notes: List[str] = []

        events = [to_utc_event(e) for e in events]
        valid_shifts: List[Shift] = []
        for shift in (to_utc_shift(s) for s in shifts):
            if shift.is_valid_window(now):
                valid_shifts.append(shift)
            else:
                start, end = shift.start_time, shift.effective_end(now)
                logger.warning(f"Shift {shift.id} has an invalid window {start} - {end}, skipping")
                reporter.add_invalid_shift(
                    shift.id, detail=f"effective end {end.isoformat()} not after start {start.isoformat()}"
                )

        assignment = event_assignment.assign(events, valid_shifts, now)
        reporter.add_orphans(assignment.orphans)
        reporter.add_reassigned([a.event.id for a in assignment.reassigned])
        groups = event_assignment.group_by_asset_and_shift(assignment.assigned)

        requested = self._requested_shifts(valid_shifts, shift_ids, reporter, notes)
        requested_ids = {shift.id for shift in requested}
        asset_index = self._asset_index(assets, groups.keys())

        unreported = sum(
            len(group) for (_, shift_id), group in groups.items() if shift_id not in requested_ids
        )
        if unreported:
            notes.append(f"{unreported} assigned events belong to shifts that were not requested")

        reports: List[KPIReport] = []
        for shift in requested:
            window = ShiftWindow.for_shift(shift, now)
            for asset in asset_index.values():
                shift_events = groups.get((asset.id, shift.id))
                if shift_events is None and not self._is_listed(asset, assets):
                    continue
                timeline = reconstruct(
                    asset.id, window, shift_events or [], coalesce=self.config.coalesce_intervals
                )
                reporter.add_timeline(timeline)
                reports.append(self._build_report(asset, timeline, self._factors_for(asset.id, factors)))

        anomalies = reporter.build()
        if anomalies.orphan_count:
            notes.append(f"{anomalies.orphan_count} events could not be assigned to a shift")

        logger.info(
            f"Computed {len(reports)} KPI reports for {len(asset_index)} assets "
            f"over {len(requested)} shifts"
        )
        return KPIComputation(
            evaluated_at=now,
            reports=reports,
            aggregate=self.aggregate_reports(reports),
            anomalies=anomalies,
            processing_notes=notes,
        )

    def compute_records(
        self,
        event_records: List[Dict[str, Any]],
        shift_records: List[Dict[str, Any]],
        assets: List[Asset],
        now: datetime,
        factors: FactorsInput = None,
        shift_ids: Optional[List[int]] = None
    ) -> KPIComputation:
        """
        Normalize host rows, then compute as in compute().

        Rows that cannot be normalized are left out of the computation and
        listed in anomalies.malformed_records.
        """
        parsed_events = parse_event_records(event_records)
        parsed_shifts = parse_shift_records(shift_records)
        return self.compute(
            parsed_events.events,
            parsed_shifts.shifts,
            assets,
            now,
            factors=factors,
            shift_ids=shift_ids,
            malformed=parsed_events.malformed + parsed_shifts.malformed,
        )

    def compute_window(
        self,
        events: List[Event],
        asset: Asset,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
        factors: Optional[ProductionFactors] = None,
        malformed: Optional[List[MalformedRecord]] = None
    ) -> KPIComputation:
        """
        Compute KPIs of one asset over an arbitrary time window.

        Events are selected by asset and time only; stored shift IDs are
        ignored. The window is [window_start, min(now, window_end)).
        Rows in `malformed` go to the anomaly report as in compute().

        Raises:
            ValueError: if the effective window has no duration
        """
        now = ensure_utc(now)
        start = ensure_utc(window_start)
        end = min(now, ensure_utc(window_end))
        if end <= start:
            raise ValueError(f"Window {start} - {end} has no duration")

        reporter = AnomalyReporter()
        reporter.add_malformed(malformed or [])
        notes: List[str] = []
        window = ShiftWindow(start=start, end=end)

        selected: List[Event] = []
        outside = 0
        for event in (to_utc_event(e) for e in events):
            if event.asset_id != asset.id:
                continue
            if event.timestamp is None:
                reporter.add_orphans([OrphanEvent(
                    event_id=event.id,
                    asset_id=event.asset_id,
                    raw_timestamp=event.raw_timestamp,
                    stored_shift_id=event.shift_id,
                    reason=event_assignment.ORPHAN_INVALID_TIMESTAMP,
                )])
            elif window.contains(event.timestamp):
                selected.append(event)
            else:
                outside += 1
        if outside:
            notes.append(f"{outside} events of asset {asset.id} lie outside the window")

        timeline = reconstruct(asset.id, window, selected, coalesce=self.config.coalesce_intervals)
        reporter.add_timeline(timeline)
        report = self._build_report(asset, timeline, factors)

        return KPIComputation(
            evaluated_at=now,
            reports=[report],
            aggregate=self.aggregate_reports([report]),
            anomalies=reporter.build(),
            processing_notes=notes,
        )

    def propose_repairs(
        self,
        events: List[Event],
        shifts: List[Shift],
        now: datetime
    ) -> List[RepairProposal]:
        """Shift reassignment and timestamp proposals, using the configured clock-skew tolerance."""
        return propose_shift_reassignments(events, shifts, now) + propose_timestamp_corrections(
            events, shifts, now, tolerance_seconds=self.config.clock_skew_tolerance_seconds
        )

    def aggregate_reports(self, reports: List[KPIReport]) -> AggregateKPIReport:
        """
        Combine per-asset reports into time-weighted headline figures.

        Availability, micro-stop share and OEE are weighted by window length;
        MTTR by full-stop count and MTBF by the number of gaps between stops.
        """
        if not reports:
            return AggregateKPIReport()

        window_hours = sum(r.window_hours for r in reports)
        runtime_hours = sum(r.total_runtime_hours for r in reports)
        micro_hours = sum(r.micro_stop_time_hours for r in reports)
        total_stops = sum(r.total_stops for r in reports)

        mttr_weight = mtbf_weight = 0
        mttr_sum = mtbf_sum = 0.0
        for r in reports:
            if r.reliability_insufficient_data:
                continue
            mttr_sum += r.avg_mttr_hours * r.total_stops
            mttr_weight += r.total_stops
            mtbf_sum += r.avg_mtbf_hours * (r.total_stops - 1)
            mtbf_weight += r.total_stops - 1

        availability = runtime_hours / window_hours * 100 if window_hours > 0 else 0.0
        oee_percentage = (
            sum(r.oee_percentage * r.window_hours for r in reports) / window_hours
            if window_hours > 0 else 0.0
        )

        return AggregateKPIReport(
            report_count=len(reports),
            asset_count=len({r.asset_id for r in reports}),
            overall_availability=self._round(availability),
            total_runtime_hours=self._round(runtime_hours),
            total_downtime_hours=self._round(sum(r.total_downtime_hours for r in reports)),
            total_stops=total_stops,
            stop_frequency_per_hour=self._round(total_stops / window_hours if window_hours > 0 else 0.0),
            micro_stops=sum(r.micro_stops for r in reports),
            micro_stop_time_hours=self._round(micro_hours),
            micro_stop_percentage=self._round(micro_hours / window_hours * 100 if window_hours > 0 else 0.0),
            avg_mtbf_hours=self._round(mtbf_sum / mtbf_weight if mtbf_weight else 0.0),
            avg_mttr_hours=self._round(mttr_sum / mttr_weight if mttr_weight else 0.0),
            oee_percentage=self._round(oee_percentage),
            performance_level=performance_level(availability),
            no_data_reports=sum(1 for r in reports if r.no_data),
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _round(self, value: float, extra_places: int = 0) -> float:
        return round(value, self.config.decimal_places + extra_places)

    def _requested_shifts(
        self,
        valid_shifts: List[Shift],
        shift_ids: Optional[List[int]],
        reporter: AnomalyReporter,
        notes: List[str]
    ) -> List[Shift]:
        if shift_ids is None:
            return valid_shifts

        by_id = {}
        for shift in valid_shifts:
            by_id.setdefault(shift.id, shift)

        requested = []
        for shift_id in shift_ids:
            if shift_id in by_id:
                requested.append(by_id[shift_id])
            elif shift_id not in reporter.invalid_shift_ids:
                notes.append(f"Requested shift {shift_id} not found")
        return requested

    def _asset_index(self, assets: List[Asset], group_keys) -> Dict[int, Asset]:
        """Listed assets first, then assets that only appear in events."""
        index: Dict[int, Asset] = {}
        for asset in assets:
            index.setdefault(asset.id, asset)
        for asset_id, _ in group_keys:
            if asset_id not in index:
                logger.debug(f"Asset {asset_id} not listed, using configured thresholds")
                index[asset_id] = Asset(
                    id=asset_id,
                    microstop_threshold=self.config.microstop_threshold_seconds,
                    short_stop_threshold=self.config.short_stop_threshold_seconds,
                    long_stop_threshold=self.config.long_stop_threshold_seconds,
                )
        return index

    @staticmethod
    def _is_listed(asset: Asset, assets: List[Asset]) -> bool:
        return any(a.id == asset.id for a in assets)

    @staticmethod
    def _factors_for(asset_id: int, factors: FactorsInput) -> Optional[ProductionFactors]:
        if isinstance(factors, dict):
            return factors.get(asset_id)
        return factors

    def _build_report(
        self,
        asset: Asset,
        timeline: TimelineResult,
        factors: Optional[ProductionFactors]
    ) -> KPIReport:
        """
        Turn one reconstructed timeline into a KPIReport.

        Stops are classified on the merged interval sequence, so
        config.coalesce_intervals only shapes report.intervals.
        """
        window = timeline.window
        intervals = merge_intervals(timeline.intervals)
        threshold = asset.microstop_threshold

        partial = aggregate(intervals, threshold, window.duration_seconds)
        rel = reliability(intervals, threshold)
        availability = oee_calculator.availability(partial.runtime_seconds, partial.total_downtime_seconds)
        oee_result = oee_calculator.oee(
            availability,
            performance=factors.performance if factors else None,
            quality=factors.quality if factors else None,
            default_performance=self.config.default_performance,
            default_quality=self.config.default_quality,
        )
        downtime = analyze(
            intervals,
            threshold,
            short_stop_threshold_seconds=asset.short_stop_threshold,
            long_stop_threshold_seconds=asset.long_stop_threshold,
        )

        availability_percent = availability * 100
        full_stop_and_outage = partial.downtime_seconds + partial.error_seconds + partial.maintenance_seconds

        return KPIReport(
            asset_id=asset.id,
            asset_name=asset.name,
            shift_id=window.shift_id,
            window_start=window.start,
            window_end=window.end,
            window_hours=self._round(to_hours(window.duration_seconds)),
            overall_availability=self._round(availability_percent),
            total_runtime_hours=self._round(to_hours(partial.runtime_seconds)),
            total_downtime_hours=self._round(to_hours(full_stop_and_outage)),
            total_stops=partial.total_stops,
            stop_frequency_per_hour=self._round(partial.stop_frequency_per_hour),
            micro_stops=partial.micro_stops,
            micro_stop_time_hours=self._round(to_hours(partial.micro_stop_seconds)),
            micro_stop_percentage=self._round(partial.micro_stop_percentage),
            error_time_hours=self._round(to_hours(partial.error_seconds)),
            maintenance_time_hours=self._round(to_hours(partial.maintenance_seconds)),
            avg_mtbf_hours=self._round(rel.mtbf_hours),
            avg_mttr_hours=self._round(rel.mttr_hours),
            oee_percentage=self._round(oee_result.oee_percentage),
            availability_factor=self._round(oee_result.availability, 2),
            performance_factor=self._round(oee_result.performance, 2),
            quality_factor=self._round(oee_result.quality, 2),
            performance_measured=oee_result.performance_measured,
            quality_measured=oee_result.quality_measured,
            performance_level=performance_level(availability_percent),
            no_data=timeline.no_data,
            inferred_start_state=timeline.inferred_start,
            reliability_insufficient_data=rel.insufficient_data,
            reliability_reason=rel.reason,
            event_count=timeline.event_count,
            downtime=downtime,
            intervals=timeline.intervals if self.config.include_intervals else [],
        )
