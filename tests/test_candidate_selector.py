"""
Tests for autonomous candidate gating, scoring and entry under cooldowns.
"""
import asyncio

from thinscalp.analysis.candidate_selector import CandidateSelector, passes_gates, score_candidate
from thinscalp.analysis.momentum_feed import CandidateMetrics, HorizonMetrics
from thinscalp.positions.entry_executor import EntryExecutor
from thinscalp.positions.models import Position
from thinscalp.positions.position_monitor import EXIT_PROFILES
from tests.helpers.factories import make_autopilot_config, make_engine
from tests.helpers.venue_stubs import MINT_A, MINT_B, MINT_C, FakeVenue, RecordingNotifier, StaticSource

MINUTE_MS = 60_000


def candidate(mint, buys30=5, chg30=2.0, buys5=10, chg5=3.0, liquidity=None) -> CandidateMetrics:
    return CandidateMetrics(
        instrument_id=mint,
        horizons={
            "30s": HorizonMetrics(buys=buys30, change_pct=chg30, trades=buys30),
            "5m": HorizonMetrics(buys=buys5, change_pct=chg5, trades=buys5),
        },
        liquidity_usd=liquidity,
    )


def build_selector(store, cooldowns, autopilot_config, snapshot, venue=None, notifier=None):
    venue = venue or FakeVenue()
    entries = EntryExecutor(make_engine(venue), store, venue, EXIT_PROFILES["scalp_thin"])
    return CandidateSelector(
        autopilot_config,
        cooldowns,
        StaticSource(snapshot),
        store,
        entries,
        notifier=notifier or RecordingNotifier(),
    )


def test_score_is_weighted_sum_over_horizons(autopilot_config):
    scored = score_candidate(candidate(MINT_A, buys30=4, chg30=2.0, buys5=10, chg5=3.0), autopilot_config)

    # 2*4 + 1.5*2 + 1*10 + 1*3
    assert scored.score == 24.0
    assert scored.components["30s_buys"] == 8.0


def test_score_is_monotonic_in_buys_and_change(autopilot_config):
    base = score_candidate(candidate(MINT_A), autopilot_config).score

    assert score_candidate(candidate(MINT_A, buys30=6), autopilot_config).score > base
    assert score_candidate(candidate(MINT_A, chg5=9.0), autopilot_config).score > base
    assert score_candidate(candidate(MINT_A), autopilot_config).score == base


def test_gates_require_every_horizon(autopilot_config):
    assert passes_gates(candidate(MINT_A), autopilot_config)
    assert not passes_gates(candidate(MINT_A, buys30=2), autopilot_config)
    assert not passes_gates(candidate(MINT_A, chg5=1.0), autopilot_config)

    missing = candidate(MINT_A)
    del missing.horizons["5m"]
    assert not passes_gates(missing, autopilot_config)


def test_liquidity_gate_only_applies_when_reported():
    config = make_autopilot_config(min_liquidity_usd=5000)

    assert passes_gates(candidate(MINT_A, liquidity=None), config)
    assert passes_gates(candidate(MINT_A, liquidity=8000), config)
    assert not passes_gates(candidate(MINT_A, liquidity=1000), config)


def test_select_orders_by_score_then_mint_and_truncates(store, cooldowns, autopilot_config):
    autopilot_config.max_open_positions = 2
    snapshot = {
        MINT_C: candidate(MINT_C, buys30=9),
        MINT_B: candidate(MINT_B),
        MINT_A: candidate(MINT_A),
    }
    selector = build_selector(store, cooldowns, autopilot_config, snapshot)

    picked = selector.select(snapshot, cooldowns.now_ms())

    assert [c.instrument_id for c in picked] == [MINT_C, MINT_A]


def test_select_excludes_blacklisted_held_and_retrying(store, cooldowns, autopilot_config):
    autopilot_config.blacklist.append(MINT_A)
    store.put(Position(MINT_B, 0.02, 100, 20.0, 10.0))
    cooldowns.record_attempt(MINT_C)
    snapshot = {m: candidate(m) for m in (MINT_A, MINT_B, MINT_C)}
    selector = build_selector(store, cooldowns, autopilot_config, snapshot)

    assert selector.select(snapshot, cooldowns.now_ms()) == []


def test_one_entry_per_cooldown_window(store, cooldowns, autopilot_config, clock):
    snapshot = {MINT_A: candidate(MINT_A, buys30=9), MINT_B: candidate(MINT_B)}
    notifier = RecordingNotifier()
    selector = build_selector(store, cooldowns, autopilot_config, snapshot, notifier=notifier)

    assert asyncio.run(selector.run_once()) == MINT_A
    assert asyncio.run(selector.run_once()) is None

    clock.advance(30 * MINUTE_MS)
    assert asyncio.run(selector.run_once()) == MINT_B

    assert store.get(MINT_A).source == "autopilot"
    assert [e[0] for e in notifier.entries] == [MINT_A, MINT_B]
    assert all(e[2] for e in notifier.entries)
    assert autopilot_config.last_entry_at_ms == clock.now_ms


def test_failed_entry_moves_to_next_candidate(store, cooldowns, autopilot_config, clock):
    venue = FakeVenue(failing_mints=(MINT_A,))
    snapshot = {MINT_A: candidate(MINT_A, buys30=9), MINT_B: candidate(MINT_B)}
    selector = build_selector(store, cooldowns, autopilot_config, snapshot, venue=venue)

    assert asyncio.run(selector.run_once()) == MINT_B

    assert MINT_A not in store
    assert autopilot_config.last_attempted[MINT_A] == clock.now_ms
    assert not cooldowns.retry_ready(MINT_A)


def test_failure_alone_does_not_start_global_cooldown(store, cooldowns, autopilot_config):
    venue = FakeVenue(failing_mints=(MINT_A,))
    selector = build_selector(store, cooldowns, autopilot_config, {MINT_A: candidate(MINT_A)}, venue=venue)

    assert asyncio.run(selector.run_once()) is None
    assert autopilot_config.last_entry_at_ms == 0
    assert cooldowns.global_ready()


def test_disabled_or_full_skips_snapshot(store, cooldowns, autopilot_config):
    selector = build_selector(store, cooldowns, autopilot_config, {MINT_A: candidate(MINT_A)})

    autopilot_config.enabled = False
    assert asyncio.run(selector.run_once()) is None

    autopilot_config.enabled = True
    autopilot_config.max_open_positions = 1
    store.put(Position(MINT_B, 0.02, 100, 20.0, 10.0))
    assert asyncio.run(selector.run_once()) is None

    assert selector.source.calls == 0


def test_attempts_are_persisted(store, cooldowns, autopilot_config, config_store):
    venue = FakeVenue(failing_mints=(MINT_A,))
    selector = build_selector(store, cooldowns, autopilot_config, {MINT_A: candidate(MINT_A)}, venue=venue)

    asyncio.run(selector.run_once())

    assert MINT_A in config_store.load().last_attempted


def test_manual_entry_during_attempt_fills_capacity(store, cooldowns, autopilot_config):
    autopilot_config.max_open_positions = 2

    class ManualEntryVenue(FakeVenue):
        async def execute(self, route):
            if route.output_mint == MINT_A:
                # two /autobuy commands complete while the autopilot buy is in flight
                store.put(Position(MINT_C, 0.02, 100, 20.0, 10.0))
                store.put(Position("MintDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDDD", 0.02, 100, 20.0, 10.0))
            return await super().execute(route)

    venue = ManualEntryVenue(failing_mints=(MINT_A,))
    snapshot = {MINT_A: candidate(MINT_A, buys30=9), MINT_B: candidate(MINT_B)}
    selector = build_selector(store, cooldowns, autopilot_config, snapshot, venue=venue)

    assert asyncio.run(selector.run_once()) is None

    assert MINT_B not in store
    assert len(store) == 2
    assert venue.executed_buys == []


def test_failed_pass_is_reported(store, cooldowns, autopilot_config):
    notifier = RecordingNotifier()
    selector = build_selector(store, cooldowns, autopilot_config, {}, notifier=notifier)
    selector.tick_seconds = 0

    async def failing_pass():
        selector.stop()
        raise RuntimeError("feed down")

    selector.run_once = failing_pass
    asyncio.run(selector.run_forever())

    assert notifier.errors == [("Autopilot pass failed", "feed down")]
