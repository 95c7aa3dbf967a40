"""
Candidate Selector - gates, scores and enters autonomous candidates under capacity and cooldown limits
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from thinscalp.analysis.momentum_feed import CandidateMetrics
from thinscalp.controls.autopilot_config import AutopilotConfig
from thinscalp.controls.cooldowns import EntryCooldowns
from thinscalp.positions.entry_executor import EntryExecutor
from thinscalp.positions.position_store import PositionStore


@dataclass
class ScoredCandidate:
    """A candidate that passed every gate"""
    instrument_id: str
    score: float
    components: Dict[str, float] = field(default_factory=dict)


def score_candidate(candidate: CandidateMetrics, config: AutopilotConfig) -> ScoredCandidate:
    """
    Weighted linear score over the gated horizons.

    All weights are non-negative, so raising any buy count or change never
    lowers the score.
    """
    components: Dict[str, float] = {}
    for name, gate in config.sorted_gates():
        metrics = candidate.horizons.get(name)
        if metrics is None:
            continue
        components[f"{name}_buys"] = gate.buy_weight * metrics.buys
        components[f"{name}_change"] = gate.change_weight * metrics.change_pct
    return ScoredCandidate(
        instrument_id=candidate.instrument_id,
        score=sum(components.values()),
        components=components,
    )


def passes_gates(candidate: CandidateMetrics, config: AutopilotConfig) -> bool:
    """Every horizon must meet both its buy-count and price-change minimum"""
    if config.min_liquidity_usd > 0 and candidate.liquidity_usd is not None:
        if candidate.liquidity_usd < config.min_liquidity_usd:
            return False

    for name, gate in config.gates.items():
        metrics = candidate.horizons.get(name)
        if metrics is None:
            return False
        if metrics.buys < gate.min_buys:
            return False
        if metrics.change_pct < gate.min_change_pct:
            return False
    return True


class CandidateSelector:
    """Autonomous entry loop"""

    def __init__(
        self,
        config: AutopilotConfig,
        cooldowns: EntryCooldowns,
        source,
        store: PositionStore,
        entries: EntryExecutor,
        notifier=None,
        tick_seconds: float = 60.0,
    ):
        """
        Initialize candidate selector

        Args:
            config: Shared AutopilotConfig (also edited by commands)
            cooldowns: Global and per-instrument cooldown limiter
            source: Candidate source with ``async snapshot()``
            store: Position store (capacity and held checks)
            entries: Entry executor used to open positions
            notifier: Optional sink with ``send_entry_alert``
            tick_seconds: Interval between selection passes
        """
        self.config = config
        self.cooldowns = cooldowns
        self.source = source
        self.store = store
        self.entries = entries
        self.notifier = notifier
        self.tick_seconds = tick_seconds
        self.running = False
        logger.info("Candidate selector initialized")

    def remaining_capacity(self) -> int:
        return max(0, self.config.max_open_positions - len(self.store))

    def select(self, snapshot: Dict[str, CandidateMetrics], now_ms: int) -> List[ScoredCandidate]:
        """Filter, score and rank candidates; truncated to remaining capacity"""
        room = self.remaining_capacity()
        if room == 0:
            return []

        scored: List[ScoredCandidate] = []
        for instrument_id, candidate in snapshot.items():
            if self.config.is_blacklisted(instrument_id):
                continue
            if instrument_id in self.store:
                continue
            if not self.cooldowns.retry_ready(instrument_id, now_ms):
                continue
            if not passes_gates(candidate, self.config):
                continue
            scored.append(score_candidate(candidate, self.config))

        scored.sort(key=lambda c: (-c.score, c.instrument_id))
        return scored[:room]

    async def run_once(self) -> Optional[str]:
        """
        One selection pass.

        Returns:
            Mint of the position opened this pass, or None
        """
        if not self.config.enabled:
            return None
        if self.remaining_capacity() == 0:
            logger.debug("Autopilot: no open-position capacity")
            return None

        now_ms = self.cooldowns.now_ms()
        if not self.cooldowns.global_ready(now_ms):
            return None

        self.cooldowns.prune(now_ms)
        snapshot = await self.source.snapshot()
        candidates = self.select(snapshot, now_ms)
        if not candidates:
            return None

        logger.info(
            "Autopilot candidates: "
            + ", ".join(f"{c.instrument_id[:8]}({c.score:.1f})" for c in candidates)
        )

        for candidate in candidates:
            mint = candidate.instrument_id
            # re-check after awaits: a command may have changed state meanwhile
            if not self.config.enabled or self.remaining_capacity() == 0:
                break
            if mint in self.store or self.config.is_blacklisted(mint):
                continue
            try:
                self.cooldowns.record_attempt(mint)
                position, result = await self.entries.open_position(
                    mint, self.config.budget_native, source="autopilot"
                )
            except Exception as e:
                logger.error(f"[Autopilot buy error] {mint}: {e}")
                continue

            self.cooldowns.record_entry()
            logger.info(
                f"🤖 Autopilot BUY {mint}: {result.spent_native:.6f} SOL in {result.shard_count} shards "
                f"(score {candidate.score:.1f})"
            )
            if self.notifier:
                try:
                    await self.notifier.send_entry_alert(position, result, autopilot=True)
                except Exception as e:
                    logger.warning(f"Entry alert for {mint} not delivered: {e}")
            return mint

        return None

    async def run_forever(self):
        self.running = True
        logger.info("Autopilot loop started")
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[Autopilot loop] {e}")
                if self.notifier:
                    try:
                        await self.notifier.send_error("Autopilot pass failed", str(e))
                    except Exception as alert_error:
                        logger.warning(f"Error alert not delivered: {alert_error}")
            await asyncio.sleep(self.tick_seconds)

    def stop(self):
        self.running = False
