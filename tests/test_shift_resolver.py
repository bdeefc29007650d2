"""
Unit tests for shift window resolution.
"""

from asset_kpi.models.event import ShiftStatus
from asset_kpi.services import shift_resolver
from factories import at, shift


def test_contains_is_inclusive_at_both_ends(day_shift, now):
    assert shift_resolver.contains(day_shift, at(8), now)
    assert shift_resolver.contains(day_shift, at(16), now)
    assert not shift_resolver.contains(day_shift, at(7, 59, 59), now)
    assert not shift_resolver.contains(day_shift, at(16, 0, 1), now)


def test_open_shift_ends_at_now(open_shift):
    assert shift_resolver.shift_window(open_shift, at(12)) == (at(8), at(12))
    assert shift_resolver.contains(open_shift, at(11), at(12))
    assert not shift_resolver.contains(open_shift, at(13), at(12))


def test_closed_shift_truncated_at_now(day_shift):
    assert shift_resolver.shift_window(day_shift, at(10)) == (at(8), at(10))
    assert not shift_resolver.contains(day_shift, at(11), at(10))


def test_resolve_single_match(day_shift, night_shift, now):
    assert shift_resolver.resolve([day_shift, night_shift], at(9), now).id == 1
    assert shift_resolver.resolve([day_shift, night_shift], at(17), now).id == 2


def test_resolve_prefers_latest_start(now):
    early = shift(1, at(8), at(16))
    overlap = shift(2, at(12), at(20))

    assert shift_resolver.resolve([early, overlap], at(13), now).id == 2
    assert shift_resolver.resolve([overlap, early], at(13), now).id == 2


def test_shared_boundary_goes_to_later_shift(day_shift, night_shift, now):
    assert shift_resolver.resolve([day_shift, night_shift], at(16), now).id == 2


def test_resolve_tie_prefers_active(now):
    completed = shift(1, at(8), at(16))
    active = shift(2, at(8), None, status=ShiftStatus.ACTIVE)

    assert shift_resolver.resolve([completed, active], at(9), now).id == 2


def test_resolve_tie_keeps_input_order(now):
    first = shift(1, at(8), at(16))
    second = shift(2, at(8), at(16))

    assert shift_resolver.resolve([first, second], at(9), now).id == 1
    assert shift_resolver.resolve([second, first], at(9), now).id == 2


def test_invalid_windows_never_qualify():
    inverted = shift(1, at(10), at(9))
    future_open = shift(2, at(13), None, status=ShiftStatus.ACTIVE)

    assert shift_resolver.resolve([inverted], at(9, 30), at(18)) is None
    assert shift_resolver.resolve([future_open], at(13), at(12)) is None


def test_resolve_not_found(day_shift, now):
    assert shift_resolver.resolve([day_shift], at(6), now) is None
    assert shift_resolver.resolve([], at(9), now) is None


def test_find_and_index(day_shift, night_shift):
    duplicate = shift(1, at(0), at(4))

    assert shift_resolver.find_shift([day_shift, night_shift], 2) is night_shift
    assert shift_resolver.find_shift([day_shift], 9) is None
    assert shift_resolver.find_shift([day_shift], None) is None
    assert shift_resolver.index_shifts([day_shift, duplicate])[1] is day_shift
