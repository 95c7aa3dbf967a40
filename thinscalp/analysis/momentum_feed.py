"""
Momentum Feed Aggregator - rolling per-instrument trade history with sliding-window metrics
"""
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional


@dataclass
class TradeTick:
    """One trade observed on the momentum feed"""
    instrument_id: str
    side: str  # buy | sell
    price: float
    amount_native: float
    timestamp: float = field(default_factory=time.time)

    @property
    def is_buy(self) -> bool:
        return self.side == "buy"


@dataclass
class HorizonMetrics:
    """Activity within one sliding window"""
    buys: int = 0
    change_pct: float = 0.0
    volume_native: float = 0.0
    trades: int = 0


@dataclass
class CandidateMetrics:
    """Per-instrument input to the candidate selector"""
    instrument_id: str
    horizons: Dict[str, HorizonMetrics]
    liquidity_usd: Optional[float] = None


@dataclass
class FeedBucket:
    """Trade history for one instrument"""
    last_price: Optional[float] = None
    trades: Deque[TradeTick] = field(default_factory=deque)

    def prune(self, cutoff: float):
        while self.trades and self.trades[0].timestamp < cutoff:
            self.trades.popleft()


class MomentumFeedAggregator:
    """
    Keeps a pruned trade history per instrument.

    Horizons are sliding windows measured back from the query time and
    recomputed on every call; history older than the longest horizon is
    dropped.
    """

    def __init__(self, horizons: Dict[str, int]):
        """
        Args:
            horizons: Horizon name -> window length in seconds
        """
        if not horizons:
            raise ValueError("At least one horizon is required")
        self.horizons = dict(horizons)
        self.retention_seconds = max(self.horizons.values())
        self.buckets: Dict[str, FeedBucket] = {}

    def on_new_instrument(self, instrument_id: str) -> FeedBucket:
        return self.buckets.setdefault(instrument_id, FeedBucket())

    def on_trade(self, tick: TradeTick):
        bucket = self.on_new_instrument(tick.instrument_id)
        bucket.trades.append(tick)
        bucket.last_price = tick.price
        bucket.prune(tick.timestamp - self.retention_seconds)

    def instruments(self) -> List[str]:
        return list(self.buckets.keys())

    def metrics(self, instrument_id: str, now: float = None) -> Dict[str, HorizonMetrics]:
        """
        Windowed metrics for every horizon.

        Change is measured between the first and last trade price inside the
        window and is 0 when the window holds fewer than two trades.
        """
        now = time.time() if now is None else now
        bucket = self.buckets.get(instrument_id)
        if bucket is None:
            return {name: HorizonMetrics() for name in self.horizons}

        bucket.prune(now - self.retention_seconds)
        result: Dict[str, HorizonMetrics] = {}
        for name, seconds in self.horizons.items():
            window = [t for t in bucket.trades if t.timestamp >= now - seconds]
            metrics = HorizonMetrics(
                buys=sum(1 for t in window if t.is_buy),
                volume_native=sum(t.amount_native for t in window),
                trades=len(window),
            )
            if len(window) >= 2 and window[0].price > 0:
                metrics.change_pct = (window[-1].price - window[0].price) / window[0].price * 100
            result[name] = metrics
        return result

    async def snapshot(self, now: float = None) -> Dict[str, CandidateMetrics]:
        """Candidate-source view: metrics for instruments with recent trades"""
        now = time.time() if now is None else now
        snapshot: Dict[str, CandidateMetrics] = {}
        for instrument_id in self.instruments():
            horizons = self.metrics(instrument_id, now)
            if not any(m.trades for m in horizons.values()):
                continue
            snapshot[instrument_id] = CandidateMetrics(instrument_id=instrument_id, horizons=horizons)
        return snapshot
