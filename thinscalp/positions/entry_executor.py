"""
Entry execution - buys an instrument and starts tracking the resulting position
"""
from typing import Optional, Tuple

from loguru import logger

from thinscalp.errors import InstrumentNotFoundError
from thinscalp.execution.sharded_execution import BuyResult, ShardedExecutionEngine
from thinscalp.positions.models import Position
from thinscalp.positions.position_monitor import ExitProfile
from thinscalp.positions.position_store import PositionStore


class EntryExecutor:
    """Opens monitored positions for manual and autonomous entries"""

    def __init__(
        self,
        engine: ShardedExecutionEngine,
        store: PositionStore,
        venue,
        profile: ExitProfile,
        verify_instruments: bool = True,
    ):
        self.engine = engine
        self.store = store
        self.venue = venue
        self.profile = profile
        self.verify_instruments = verify_instruments

    async def open_position(
        self,
        instrument_id: str,
        budget_native: float,
        source: str = "manual",
        slippage_bps: Optional[int] = None,
    ) -> Tuple[Position, BuyResult]:
        """
        Buy ``budget_native`` worth of the instrument and persist a Position.

        Raises:
            InstrumentNotFoundError: the mint does not exist
            ThinScalpError subclasses from the execution engine
        """
        if self.verify_instruments and not await self.venue.instrument_exists(instrument_id):
            raise InstrumentNotFoundError(f"Mint does not exist: {instrument_id}")

        result = await self.engine.buy_by_native(instrument_id, budget_native, slippage_bps)

        existing = self.store.get(instrument_id)
        if existing is not None:
            # scale-in keeps the thresholds and adds to the cost basis
            existing.entry_cost_native += result.spent_native
            existing.entry_received_raw += result.received_raw
            self.store.save(existing)
            logger.info(f"Added {result.spent_native:.6f} SOL to open position {instrument_id}")
            return existing, result

        position = Position(
            instrument_id=instrument_id,
            entry_cost_native=result.spent_native,
            entry_received_raw=result.received_raw,
            take_profit_pct=self.profile.take_profit_pct,
            stop_loss_pct=self.profile.stop_loss_pct,
            profile=self.profile.name,
            source=source,
        )
        self.store.put(position)

        logger.info(
            f"Opened {instrument_id} ({source}): {result.spent_native:.6f} SOL for "
            f"{result.received_raw} raw, TP +{position.take_profit_pct}% / SL -{position.stop_loss_pct}%"
        )
        return position, result
