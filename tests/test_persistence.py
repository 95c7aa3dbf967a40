"""
Tests for durable JSON state: positions and autopilot config survive a restart.
"""
import json
from datetime import datetime, timezone

from thinscalp.controls.autopilot_config import AutopilotConfig, AutopilotConfigStore, HorizonGate
from thinscalp.database.json_store import JsonRecordStore
from thinscalp.positions.models import Position
from thinscalp.positions.position_store import PositionStore
from tests.helpers.venue_stubs import MINT_A, MINT_B


def test_position_store_round_trip(tmp_path):
    path = tmp_path / "positions.json"
    store = PositionStore(path)
    opened = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    store.put(Position(
        instrument_id=MINT_A,
        entry_cost_native=0.05,
        entry_received_raw=123_456_789_012_345_678,
        take_profit_pct=20.0,
        stop_loss_pct=0.0,
        opened_at=opened,
        partial_exit_taken=True,
        profile="SCALP-THIN",
        source="autopilot",
    ))

    reloaded = PositionStore(path).get(MINT_A)

    assert reloaded == store.get(MINT_A)
    assert reloaded.opened_at == opened
    assert reloaded.state == "PARTIAL"
    # raw amounts are stored as strings so large integers survive any JSON reader
    assert json.loads(path.read_text())[MINT_A]["entry_received_raw"] == "123456789012345678"


def test_remove_and_cancel_are_persisted(tmp_path):
    path = tmp_path / "positions.json"
    store = PositionStore(path)
    store.put(Position(MINT_A, 0.02, 100, 20.0, 10.0))
    store.put(Position(MINT_B, 0.02, 100, 20.0, 10.0))

    assert store.remove(MINT_A) is not None
    assert store.remove(MINT_A) is None

    assert PositionStore(path).instrument_ids() == [MINT_B]


def test_save_ignores_untracked_positions(tmp_path):
    path = tmp_path / "positions.json"
    store = PositionStore(path)
    store.put(Position(MINT_A, 0.02, 100, 20.0, 10.0))
    position = store.remove(MINT_A)

    position.stop_loss_pct = 0.0
    store.save(position)

    assert len(PositionStore(path)) == 0


def test_unreadable_positions_are_dropped(tmp_path):
    path = tmp_path / "positions.json"
    path.write_text(json.dumps({
        MINT_A: {"instrument_id": MINT_A},
        MINT_B: Position(MINT_B, 0.02, 100, 20.0, 10.0).to_dict(),
    }))

    assert PositionStore(path).instrument_ids() == [MINT_B]


def test_corrupt_record_falls_back_to_default(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")

    assert JsonRecordStore(path).load(default={"fresh": True}) == {"fresh": True}


def test_save_leaves_no_temp_files(tmp_path):
    record = JsonRecordStore(tmp_path / "state.json")
    record.save({"a": 1})
    record.save({"a": 2})

    assert record.load() == {"a": 2}
    assert [p.name for p in tmp_path.iterdir()] == ["state.json"]


def test_autopilot_config_round_trip(tmp_path):
    path = tmp_path / "autopilot.json"
    defaults = AutopilotConfig(gates={"5m": HorizonGate(seconds=300, min_buys=20, min_change_pct=4.0)})
    store = AutopilotConfigStore(path, defaults)

    config = store.load()
    assert path.exists()

    config.enabled = True
    config.blacklist.append(MINT_A)
    config.gates["5m"].min_buys = 7
    config.last_attempted[MINT_B] = 1234
    store.save(config)

    reloaded = AutopilotConfigStore(path, defaults).load()
    assert reloaded == config
    assert reloaded.gates["5m"].min_buys == 7
    # defaults were copied, never mutated
    assert defaults.enabled is False


def test_autopilot_config_merges_new_defaults(tmp_path):
    path = tmp_path / "autopilot.json"
    path.write_text(json.dumps({"enabled": True, "budget_native": 0.5}))
    defaults = AutopilotConfig(retry_cooldown_ms=1000)

    config = AutopilotConfigStore(path, defaults).load()

    assert config.enabled is True
    assert config.budget_native == 0.5
    assert config.retry_cooldown_ms == 1000


def test_invalid_autopilot_config_uses_defaults(tmp_path):
    path = tmp_path / "autopilot.json"
    path.write_text(json.dumps({"max_open_positions": -4}))
    defaults = AutopilotConfig(max_open_positions=2)

    assert AutopilotConfigStore(path, defaults).load().max_open_positions == 2
