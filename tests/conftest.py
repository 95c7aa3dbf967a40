"""
Pytest configuration and fixtures for thinscalp tests.

Every fixture writes state under tmp_path, so tests never touch ./data.
"""
import pytest

from thinscalp.controls.autopilot_config import AutopilotConfigStore
from thinscalp.controls.cooldowns import EntryCooldowns
from thinscalp.positions.entry_executor import EntryExecutor
from thinscalp.positions.position_monitor import EXIT_PROFILES
from thinscalp.positions.position_store import PositionStore
from tests.helpers.factories import make_autopilot_config, make_engine
from tests.helpers.venue_stubs import FakeVenue, ManualClock, RecordingNotifier


@pytest.fixture
def venue():
    return FakeVenue()


@pytest.fixture
def engine(venue):
    return make_engine(venue)


@pytest.fixture
def store(tmp_path):
    return PositionStore(tmp_path / "positions.json")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def autopilot_config():
    return make_autopilot_config()


@pytest.fixture
def config_store(tmp_path, autopilot_config):
    return AutopilotConfigStore(tmp_path / "autopilot.json", defaults=autopilot_config)


@pytest.fixture
def cooldowns(autopilot_config, config_store, clock):
    return EntryCooldowns(autopilot_config, config_store, clock=clock)


@pytest.fixture
def entries(engine, store, venue):
    return EntryExecutor(engine, store, venue, EXIT_PROFILES["scalp_thin"])
