"""
Pytest configuration and shared fixtures.

All fixtures work on 2024-03-01 (UTC) with a day shift of [08:00, 16:00).
"""

import pytest

from asset_kpi.models.event import Asset, ShiftStatus
from asset_kpi.services.kpi_engine import KPIEngine
from asset_kpi.services.timeline import ShiftWindow
from factories import at, shift


@pytest.fixture
def now():
    """Evaluation instant after the day shift has ended."""
    return at(18)


@pytest.fixture
def day_shift():
    return shift(1, at(8), at(16), name="Day")


@pytest.fixture
def night_shift():
    return shift(2, at(16), at(23, 59, 59), name="Late")


@pytest.fixture
def open_shift():
    """Shift still running; its window ends at the evaluation instant."""
    return shift(3, at(8), None, status=ShiftStatus.ACTIVE, name="Open")


@pytest.fixture
def day_window(day_shift, now):
    return ShiftWindow.for_shift(day_shift, now)


@pytest.fixture
def press():
    return Asset(id=1, name="Press 1")


@pytest.fixture
def lathe():
    return Asset(id=2, name="Lathe 2")


@pytest.fixture
def engine():
    return KPIEngine()
