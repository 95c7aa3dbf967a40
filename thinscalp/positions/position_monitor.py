"""
Position Monitoring - polls open positions and applies the take-profit / stop-loss state machine
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from thinscalp.execution.sharded_execution import ShardedExecutionEngine, to_native
from thinscalp.positions.models import Position, utc_now
from thinscalp.positions.position_store import PositionStore


@dataclass(frozen=True)
class ExitProfile:
    """Take-profit / stop-loss thresholds applied to new positions"""
    name: str
    take_profit_pct: float
    stop_loss_pct: float
    partial_exits: bool = True


EXIT_PROFILES: Dict[str, ExitProfile] = {
    "scalp_thin": ExitProfile("SCALP-THIN", take_profit_pct=20.0, stop_loss_pct=10.0, partial_exits=True),
    "scalp_tight": ExitProfile("SCALP-TIGHT", take_profit_pct=5.0, stop_loss_pct=1.5, partial_exits=False),
}


@dataclass
class EvaluationOutcome:
    """What a single monitor evaluation did"""
    instrument_id: str
    action: str  # hold | partial_tp | final_tp | stop_loss | liquidated | skipped
    pnl_pct: Optional[float] = None
    received_native: float = 0.0
    sold_raw: int = 0


class PositionMonitor:
    """Re-prices every open position on a fixed interval and exits on TP/SL"""

    def __init__(
        self,
        store: PositionStore,
        engine: ShardedExecutionEngine,
        venue,
        notifier=None,
        partial_exits: bool = True,
        poll_seconds: float = 10.0,
    ):
        """
        Initialize position monitor

        Args:
            store: Position store (mutated and persisted here)
            engine: Execution engine used for exits and value estimates
            venue: Balance provider
            notifier: Optional alert sink with ``send_exit_alert``
            partial_exits: Sell half on the first take-profit hit
            poll_seconds: Interval between passes
        """
        self.store = store
        self.engine = engine
        self.venue = venue
        self.notifier = notifier
        self.partial_exits = partial_exits
        self.poll_seconds = poll_seconds
        self.running = False
        logger.info(
            f"Position monitor initialized (poll {poll_seconds}s, "
            f"partial exits {'on' if partial_exits else 'off'})"
        )

    async def run_once(self) -> Dict[str, EvaluationOutcome]:
        """Evaluate every tracked position once; failures are isolated per position"""
        outcomes: Dict[str, EvaluationOutcome] = {}
        for instrument_id in self.store.instrument_ids():
            position = self.store.get(instrument_id)
            if position is None:
                continue  # cancelled while an earlier position was being evaluated
            try:
                outcomes[instrument_id] = await self.evaluate(position)
            except Exception as e:
                logger.error(f"[Monitor error] {instrument_id}: {e}")
        return outcomes

    async def evaluate(self, position: Position) -> EvaluationOutcome:
        mint = position.instrument_id
        balance_raw = await self.venue.token_balance(mint)
        if mint not in self.store:
            return self._cancelled(mint)
        if balance_raw <= 0:
            self.store.remove(mint)
            logger.info(f"{mint} balance is zero - position closed externally")
            return EvaluationOutcome(mint, "liquidated")

        if not position.is_monitorable:
            logger.warning(f"{mint} has no entry cost recorded - skipping")
            return EvaluationOutcome(mint, "skipped")

        estimate_lamports = await self.engine.estimate_exit_value(mint, balance_raw)
        if mint not in self.store:
            return self._cancelled(mint)
        pnl_pct = position.pnl_pct(to_native(estimate_lamports))
        position.last_evaluated_at = utc_now()
        self.store.save(position)

        logger.debug(
            f"{mint[:8]} {position.state} pnl {pnl_pct:+.2f}% "
            f"(TP +{position.take_profit_pct}% / SL -{position.stop_loss_pct}%)"
        )

        if pnl_pct <= -position.stop_loss_pct:
            return await self._exit_full(position, balance_raw, pnl_pct, "stop_loss")

        if pnl_pct >= position.take_profit_pct:
            if self.partial_exits and not position.partial_exit_taken:
                half = balance_raw // 2
                if half > 0:
                    return await self._exit_partial(position, half, pnl_pct)
            return await self._exit_full(position, balance_raw, pnl_pct, "final_tp")

        return EvaluationOutcome(mint, "hold", pnl_pct=pnl_pct)

    async def _exit_partial(self, position: Position, raw_amount: int, pnl_pct: float) -> EvaluationOutcome:
        if position.instrument_id not in self.store:
            return self._cancelled(position.instrument_id)
        result = await self.engine.sell_by_raw(position.instrument_id, raw_amount)
        position.stop_loss_pct = 0.0
        position.partial_exit_taken = True
        self.store.save(position)

        logger.info(
            f"Partial TP {position.instrument_id} at {pnl_pct:+.2f}% - sold 50%, SL moved to breakeven"
        )
        await self._notify("partial_tp", position.instrument_id, pnl_pct, result.received_native)
        return EvaluationOutcome(
            position.instrument_id, "partial_tp", pnl_pct=pnl_pct,
            received_native=result.received_native, sold_raw=result.sold_raw,
        )

    async def _exit_full(
        self,
        position: Position,
        raw_amount: int,
        pnl_pct: float,
        action: str,
    ) -> EvaluationOutcome:
        if position.instrument_id not in self.store:
            return self._cancelled(position.instrument_id)
        result = await self.engine.sell_by_raw(position.instrument_id, raw_amount)
        self.store.remove(position.instrument_id)

        logger.info(f"{action.upper()} {position.instrument_id} at {pnl_pct:+.2f}% - position closed")
        await self._notify(action, position.instrument_id, pnl_pct, result.received_native)
        return EvaluationOutcome(
            position.instrument_id, action, pnl_pct=pnl_pct,
            received_native=result.received_native, sold_raw=result.sold_raw,
        )

    async def _report_failure(self, title: str, error: Exception):
        if not self.notifier:
            return
        try:
            await self.notifier.send_error(title, str(error))
        except Exception as e:
            logger.warning(f"Error alert not delivered: {e}")

    def _cancelled(self, instrument_id: str) -> EvaluationOutcome:
        logger.info(f"{instrument_id} was cancelled during evaluation - not trading it")
        return EvaluationOutcome(instrument_id, "skipped")

    async def _notify(self, action: str, instrument_id: str, pnl_pct: float, received_native: float):
        if not self.notifier:
            return
        try:
            await self.notifier.send_exit_alert(action, instrument_id, pnl_pct, received_native)
        except Exception as e:
            logger.warning(f"Exit alert for {instrument_id} not delivered: {e}")

    async def run_forever(self):
        """Polling loop; a failed pass never stops the loop"""
        self.running = True
        logger.info("Position monitor loop started")
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Monitor pass failed: {e}")
                await self._report_failure("Position monitor pass failed", e)
            await asyncio.sleep(self.poll_seconds)

    def stop(self):
        self.running = False
