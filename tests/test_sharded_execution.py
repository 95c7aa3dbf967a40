"""
Tests for the sharded execution engine: shard sizing, impact handling and exit slicing.
"""
import asyncio

import pytest

from thinscalp.errors import NothingToSellError, PriceImpactError, RouteUnavailableError, ZeroOutputError
from thinscalp.execution.sharded_execution import to_lamports
from tests.helpers.factories import make_engine
from tests.helpers.venue_stubs import MINT_A, FakeVenue

MIN_SHARD = 5_000_000  # 0.005 SOL


def test_buy_splits_target_into_equal_shards():
    venue = FakeVenue(buy_rate=2.0)
    engine = make_engine(venue)

    result = asyncio.run(engine.buy_by_native(MINT_A, 0.05))

    assert result.shard_count == 5
    assert [r.in_amount for r in venue.executed_buys] == [10_000_000] * 5
    assert result.spent_lamports == to_lamports(0.05)
    assert result.received_raw == 100_000_000
    assert result.signatures == ["sig1", "sig2", "sig3", "sig4", "sig5"]


def test_buy_never_spends_more_than_target():
    venue = FakeVenue()
    engine = make_engine(venue)

    result = asyncio.run(engine.buy_by_native(MINT_A, 0.012))

    # base shard is the minimum; the tail shard is allowed to fall below it
    assert [r.in_amount for r in venue.executed_buys] == [MIN_SHARD, MIN_SHARD, 2_000_000]
    assert result.spent_lamports == 12_000_000


def test_buy_aborts_when_min_shard_exceeds_hard_cap():
    venue = FakeVenue(impact_fn=lambda amount: 9.0)
    engine = make_engine(venue)

    with pytest.raises(PriceImpactError) as exc:
        asyncio.run(engine.buy_by_native(MINT_A, 0.005))

    assert venue.executed == []
    assert "Price impact too high" in str(exc.value)


def test_hard_cap_halves_remaining_and_never_executes_above_it():
    venue = FakeVenue(impact_fn=lambda amount: 6.0 if amount > MIN_SHARD else 1.0)
    engine = make_engine(venue)

    result = asyncio.run(engine.buy_by_native(MINT_A, 0.05))

    # 50M -> 25M -> 12.5M -> 6.25M -> 3.125M, which finally quotes under the cap
    assert result.shard_count == 1
    assert result.spent_lamports == 3_125_000
    assert all(r.price_impact_pct <= engine.hard_impact_pct for r in venue.executed)


def test_soft_target_executes_half_shard_when_it_quotes_better():
    venue = FakeVenue(impact_fn=lambda amount: 3.0 if amount > MIN_SHARD else 1.0)
    engine = make_engine(venue)

    result = asyncio.run(engine.buy_by_native(MINT_A, 0.05))

    assert result.shard_count == 5
    assert [r.in_amount for r in venue.executed_buys] == [MIN_SHARD] * 5
    assert result.spent_lamports == 25_000_000
    assert (venue.native_mint, MINT_A, 10_000_000, 200) in venue.quotes


def test_soft_target_keeps_full_shard_when_half_is_worse():
    venue = FakeVenue(impact_fn=lambda amount: 3.0 if amount > MIN_SHARD else 4.0)
    engine = make_engine(venue)

    result = asyncio.run(engine.buy_by_native(MINT_A, 0.05))

    assert [r.in_amount for r in venue.executed_buys] == [10_000_000] * 5
    assert result.spent_lamports == 50_000_000


def test_buy_with_zero_output_raises():
    venue = FakeVenue(buy_rate=0.0)
    engine = make_engine(venue)

    with pytest.raises(ZeroOutputError):
        asyncio.run(engine.buy_by_native(MINT_A, 0.01))


def test_slippage_is_capped():
    venue = FakeVenue()
    engine = make_engine(venue)

    asyncio.run(engine.buy_by_native(MINT_A, 0.005, base_slippage_bps=900))
    asyncio.run(engine.buy_by_native(MINT_A, 0.005))

    assert [q[3] for q in venue.quotes] == [500, 200]


def test_route_unavailable_propagates():
    class NoRouteVenue(FakeVenue):
        async def quote(self, input_mint, output_mint, amount_raw, slippage_bps):
            raise RouteUnavailableError("No route")

    engine = make_engine(NoRouteVenue())

    with pytest.raises(RouteUnavailableError):
        asyncio.run(engine.buy_by_native(MINT_A, 0.01))


def test_sell_slices_sum_to_amount():
    venue = FakeVenue(exit_rates={MINT_A: 1000.0}, balances={MINT_A: 1000})
    engine = make_engine(venue)

    result = asyncio.run(engine.sell_by_raw(MINT_A, 1000))

    assert [r.in_amount for r in venue.executed_sells] == [333, 333, 334]
    assert result.sold_raw == 1000
    assert result.received_lamports == 1_000_000
    assert venue.balances[MINT_A] == 0


def test_sell_small_balance_uses_fewer_shards():
    venue = FakeVenue(balances={MINT_A: 2})
    engine = make_engine(venue)

    result = asyncio.run(engine.sell_by_raw(MINT_A, 2))

    assert result.shard_count == 2
    assert [r.in_amount for r in venue.executed_sells] == [1, 1]


def test_sell_nothing_raises():
    engine = make_engine(FakeVenue())

    with pytest.raises(NothingToSellError):
        asyncio.run(engine.sell_by_raw(MINT_A, 0))


def test_estimate_exit_value_only_quotes():
    venue = FakeVenue(exit_rates={MINT_A: 3.0})
    engine = make_engine(venue)

    value = asyncio.run(engine.estimate_exit_value(MINT_A, 500))

    assert value == 1500
    assert venue.executed == []
    assert venue.quotes == [(MINT_A, venue.native_mint, 500, 200)]
