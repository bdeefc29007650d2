"""
Unit tests for repair proposals.
"""

import pytest

from asset_kpi.models.repair import RepairAction, RepairKind
from asset_kpi.services.event_normalizer import normalize_event
from asset_kpi.services.repair import propose_shift_reassignments, propose_timestamp_corrections
from factories import at, event, shift


def stored(event_id, timestamp, shift_id=None):
    """Event as read from storage, timestamp still in its stored text form."""
    return normalize_event({
        "id": event_id,
        "asset_id": 1,
        "timestamp": timestamp,
        "event_type": "HEARTBEAT",
        "shift_id": shift_id,
    })


class TestShiftReassignment:

    @pytest.fixture
    def shifts(self):
        return [shift(5, at(0), at(8)), shift(7, at(8), at(16))]

    def test_stale_shift_is_replaced(self, shifts, now):
        proposals = propose_shift_reassignments([event(1, at(10), shift_id=5)], shifts, now)

        assert len(proposals) == 1
        proposal = proposals[0]
        assert proposal.kind == RepairKind.SHIFT_REASSIGNMENT
        assert proposal.action == RepairAction.REPLACE_SHIFT
        assert proposal.current_shift_id == 5
        assert proposal.proposed_shift_id == 7
        assert "does not contain" in proposal.reason

    def test_missing_shift_is_assigned(self, shifts, now):
        proposal = propose_shift_reassignments([event(1, at(10))], shifts, now)[0]

        assert proposal.action == RepairAction.ASSIGN_SHIFT
        assert proposal.current_shift_id is None
        assert proposal.proposed_shift_id == 7

    def test_unknown_shift_is_replaced(self, shifts, now):
        proposal = propose_shift_reassignments([event(1, at(3), shift_id=99)], shifts, now)[0]

        assert proposal.action == RepairAction.REPLACE_SHIFT
        assert proposal.proposed_shift_id == 5
        assert "does not exist" in proposal.reason

    def test_consistent_orphan_and_untimed_events_get_no_proposal(self, shifts, now):
        events = [
            event(1, at(10), shift_id=7),
            event(2, at(20)),
            event(3, None, raw_timestamp="Invalid Date", shift_id=5),
        ]

        assert propose_shift_reassignments(events, shifts, now) == []

    def test_event_at_handover_moves_to_next_shift(self, shifts, now):
        events = [event(1, at(8), shift_id=5), event(2, at(8), shift_id=7)]

        proposals = propose_shift_reassignments(events, shifts, now)

        assert [(p.event_id, p.proposed_shift_id) for p in proposals] == [(1, 7)]
        assert proposals[0].action == RepairAction.REPLACE_SHIFT
        assert "is the end of shift 5" in proposals[0].reason

    def test_events_are_not_modified(self, shifts, now):
        original = event(1, at(10), shift_id=5)
        propose_shift_reassignments([original], shifts, now)

        assert original.shift_id == 5


class TestTimestampCorrection:

    def test_unparseable_timestamp_needs_manual_review(self, day_shift, now):
        proposals = propose_timestamp_corrections([stored(1, "Invalid Date", shift_id=1)], [day_shift], now)

        assert len(proposals) == 1
        proposal = proposals[0]
        assert proposal.kind == RepairKind.TIMESTAMP_CORRECTION
        assert proposal.action == RepairAction.MANUAL_REVIEW
        assert proposal.proposed_timestamp is None
        assert proposal.current_timestamp == "Invalid Date"
        assert (proposal.bound_start, proposal.bound_end) == (at(8), at(16))

    def test_missing_timestamp_without_shift_has_no_bounds(self, day_shift, now):
        proposal = propose_timestamp_corrections([stored(1, None)], [day_shift], now)[0]

        assert proposal.action == RepairAction.MANUAL_REVIEW
        assert proposal.reason == "timestamp is missing"
        assert proposal.bound_start is None
        assert proposal.bound_end is None

    def test_clock_skew_is_clamped(self, day_shift, now):
        proposals = propose_timestamp_corrections(
            [stored(1, "2024-03-01T16:00:30+00:00", shift_id=1),
             stored(2, "2024-03-01T07:59:15+00:00", shift_id=1)],
            [day_shift],
            now,
            tolerance_seconds=60,
        )

        assert [p.action for p in proposals] == [RepairAction.CLAMP_TO_SHIFT] * 2
        assert proposals[0].proposed_timestamp == at(15, 59, 59)
        assert proposals[0].reason.startswith("30s outside")
        assert proposals[1].proposed_timestamp == at(8)
        assert proposals[0].proposed_shift_id == 1

    def test_beyond_tolerance_is_not_clamped(self, day_shift, now):
        proposals = propose_timestamp_corrections(
            [stored(1, "2024-03-01T16:05:00+00:00", shift_id=1)], [day_shift], now, tolerance_seconds=60
        )

        assert proposals == []

    def test_non_canonical_text_is_normalized(self, day_shift, now):
        proposals = propose_timestamp_corrections(
            [stored(1, "2024-03-01T09:00:00Z"), stored(2, "2024-03-01T09:00:00+00:00")],
            [day_shift],
            now,
        )

        assert len(proposals) == 1
        assert proposals[0].event_id == 1
        assert proposals[0].action == RepairAction.NORMALIZE_FORMAT
        assert proposals[0].proposed_timestamp == at(9)
        assert proposals[0].current_timestamp == "2024-03-01T09:00:00Z"

    def test_negative_tolerance_rejected(self, day_shift, now):
        with pytest.raises(ValueError):
            propose_timestamp_corrections([], [day_shift], now, tolerance_seconds=-1)
