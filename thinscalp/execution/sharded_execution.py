"""
Sharded Execution - splits buys and sells into sequential sub-orders to keep price impact capped
"""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from thinscalp.errors import NothingToSellError, PriceImpactError, ZeroOutputError

LAMPORTS_PER_SOL = 1_000_000_000


def to_lamports(amount_native: float) -> int:
    return int(round(amount_native * LAMPORTS_PER_SOL))


def to_native(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


@dataclass
class ShardFill:
    """One executed sub-order"""
    signature: str
    in_amount: int
    out_amount: int
    price_impact_pct: float


@dataclass
class BuyResult:
    """Aggregate of a sharded buy"""
    received_raw: int
    spent_lamports: int
    fills: List[ShardFill] = field(default_factory=list)

    @property
    def spent_native(self) -> float:
        return to_native(self.spent_lamports)

    @property
    def shard_count(self) -> int:
        return len(self.fills)

    @property
    def signatures(self) -> List[str]:
        return [f.signature for f in self.fills]


@dataclass
class SellResult:
    """Aggregate of a sharded sell"""
    received_lamports: int
    sold_raw: int
    fills: List[ShardFill] = field(default_factory=list)

    @property
    def received_native(self) -> float:
        return to_native(self.received_lamports)

    @property
    def shard_count(self) -> int:
        return len(self.fills)

    @property
    def signatures(self) -> List[str]:
        return [f.signature for f in self.fills]


class ShardedExecutionEngine:
    """Realizes target buy/sell sizes as impact-aware shard sequences"""

    def __init__(
        self,
        venue,
        slippage_bps_base: int = 200,
        slippage_bps_cap: int = 500,
        target_impact_pct: float = 2.0,
        hard_impact_pct: float = 5.0,
        max_shards: int = 5,
        min_shard_native: float = 0.005,
        shard_delay_ms: int = 800,
        exit_shards: int = 3,
        exit_delay_ms: int = 1200,
    ):
        """
        Initialize the engine

        Args:
            venue: Quote/execute provider (see SwapVenue)
            slippage_bps_base: Slippage used when the caller gives none
            slippage_bps_cap: Ceiling applied to every quote request
            target_impact_pct: Soft impact target that triggers a half-size probe
            hard_impact_pct: Impact above which a shard is never executed
            max_shards: Shard cap per buy
            min_shard_native: Smallest buy shard in native units
            shard_delay_ms: Pause between buy shards
            exit_shards: Number of slices per sell
            exit_delay_ms: Pause between sell shards
        """
        self.venue = venue
        self.slippage_bps_base = slippage_bps_base
        self.slippage_bps_cap = slippage_bps_cap
        self.target_impact_pct = target_impact_pct
        self.hard_impact_pct = hard_impact_pct
        self.max_shards = max(1, max_shards)
        self.min_shard_lamports = max(1, to_lamports(min_shard_native))
        self.shard_delay_ms = shard_delay_ms
        self.exit_shards = max(1, exit_shards)
        self.exit_delay_ms = exit_delay_ms

        logger.info(
            f"Execution engine ready: {self.max_shards} buy shards (min {min_shard_native} SOL), "
            f"{self.exit_shards} exit shards, impact soft {target_impact_pct}% / hard {hard_impact_pct}%"
        )

    def _slippage(self, requested_bps: Optional[int]) -> int:
        return min(int(requested_bps or self.slippage_bps_base), self.slippage_bps_cap)

    async def buy_by_native(
        self,
        instrument_id: str,
        target_native: float,
        base_slippage_bps: Optional[int] = None,
    ) -> BuyResult:
        """
        Spend up to ``target_native`` on ``instrument_id`` in shards.

        Raises:
            PriceImpactError: impact above the hard cap at minimum shard size
            ZeroOutputError: nothing was received
            RouteUnavailableError / SubmissionError: propagated from the venue
        """
        target = to_lamports(target_native)
        if target <= 0:
            raise ZeroOutputError(f"Buy target {target_native} rounds to zero")

        slippage = self._slippage(base_slippage_bps)
        native_mint = self.venue.native_mint
        base_shard = max(target // self.max_shards, self.min_shard_lamports)
        remaining = target
        result = BuyResult(received_raw=0, spent_lamports=0)

        while remaining > 0 and result.shard_count < self.max_shards:
            shard = min(remaining, base_shard)
            route = await self.venue.quote(native_mint, instrument_id, shard, slippage)
            impact = route.price_impact_pct

            if impact > self.hard_impact_pct:
                if shard <= self.min_shard_lamports:
                    if result.shard_count:
                        logger.error(
                            f"Aborting buy of {instrument_id} after {result.shard_count} shards "
                            f"(received {result.received_raw} raw for {result.spent_native:.6f} SOL)"
                        )
                    raise PriceImpactError(impact, self.hard_impact_pct)
                remaining //= 2
                logger.warning(
                    f"{instrument_id[:8]} impact {impact:.2f}% above hard cap - "
                    f"remaining cut to {to_native(remaining):.6f} SOL"
                )
                continue

            if impact > self.target_impact_pct and shard > self.min_shard_lamports:
                smaller = max(shard // 2, self.min_shard_lamports)
                probe = await self.venue.quote(native_mint, instrument_id, smaller, slippage)
                if probe.price_impact_pct <= impact:
                    logger.debug(
                        f"{instrument_id[:8]} impact {impact:.2f}% over target, "
                        f"half shard quotes {probe.price_impact_pct:.2f}%"
                    )
                    route, shard = probe, smaller

            signature = await self.venue.execute(route)
            result.fills.append(ShardFill(
                signature=signature,
                in_amount=route.in_amount,
                out_amount=route.out_amount,
                price_impact_pct=route.price_impact_pct,
            ))
            result.spent_lamports += route.in_amount
            result.received_raw += route.out_amount
            remaining -= shard

            if remaining > 0 and result.shard_count < self.max_shards:
                await asyncio.sleep(self.shard_delay_ms / 1000)

        if result.received_raw <= 0:
            raise ZeroOutputError("Buy produced zero output.")

        logger.info(
            f"Bought {instrument_id[:8]}: {result.spent_native:.6f} SOL -> "
            f"{result.received_raw} raw in {result.shard_count} shards"
        )
        return result

    async def sell_by_raw(
        self,
        instrument_id: str,
        raw_amount: int,
        base_slippage_bps: Optional[int] = None,
    ) -> SellResult:
        """
        Sell ``raw_amount`` of ``instrument_id`` in ``exit_shards`` slices.

        Each slice is the remaining balance divided by the remaining slots;
        the last slot takes whatever is left.
        """
        total = int(raw_amount)
        if total <= 0:
            raise NothingToSellError("Nothing to sell")

        slippage = self._slippage(base_slippage_bps)
        native_mint = self.venue.native_mint
        remaining = total
        result = SellResult(received_lamports=0, sold_raw=0)

        for i in range(self.exit_shards):
            is_last = i == self.exit_shards - 1
            slice_raw = remaining if is_last else remaining // (self.exit_shards - i)
            if slice_raw <= 0:
                continue

            route = await self.venue.quote(instrument_id, native_mint, slice_raw, slippage)
            signature = await self.venue.execute(route)
            result.fills.append(ShardFill(
                signature=signature,
                in_amount=slice_raw,
                out_amount=route.out_amount,
                price_impact_pct=route.price_impact_pct,
            ))
            result.received_lamports += route.out_amount
            result.sold_raw += slice_raw
            remaining -= slice_raw

            if remaining > 0:
                await asyncio.sleep(self.exit_delay_ms / 1000)

        logger.info(
            f"Sold {result.sold_raw} raw of {instrument_id[:8]} for "
            f"{result.received_native:.6f} SOL in {result.shard_count} shards"
        )
        return result

    async def estimate_exit_value(self, instrument_id: str, raw_amount: int) -> int:
        """Quote (without executing) the native lamports a full exit would return"""
        if raw_amount <= 0:
            return 0
        route = await self.venue.quote(
            instrument_id, self.venue.native_mint, raw_amount, self._slippage(None)
        )
        return route.out_amount
