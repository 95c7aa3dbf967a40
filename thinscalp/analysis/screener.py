"""
Screener candidate source - liquidity/volume screener snapshot mapped onto momentum horizons
"""
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from thinscalp.analysis.momentum_feed import CandidateMetrics, HorizonMetrics
from thinscalp.errors import ThinScalpError

# screener window key -> horizon name used in the gates
SCREENER_HORIZONS = {"m5": "5m", "h1": "1h"}


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def metrics_from_pair(pair: Dict[str, Any], chain_id: str = "solana") -> Optional[CandidateMetrics]:
    """Map one screener pair to CandidateMetrics; None when it is not usable"""
    chain = str(pair.get("chainId") or "")
    if chain_id.lower() not in chain.lower():
        return None

    mint = (pair.get("baseToken") or {}).get("address")
    if not mint:
        return None

    txns = pair.get("txns") or {}
    changes = pair.get("priceChange") or {}
    volume = pair.get("volume") or {}

    horizons: Dict[str, HorizonMetrics] = {}
    for key, name in SCREENER_HORIZONS.items():
        window = txns.get(key) or {}
        buys = int(_num(window.get("buys")))
        sells = int(_num(window.get("sells")))
        horizons[name] = HorizonMetrics(
            buys=buys,
            change_pct=_num(changes.get(key)),
            volume_native=_num(volume.get(key)),
            trades=buys + sells,
        )

    return CandidateMetrics(
        instrument_id=mint,
        horizons=horizons,
        liquidity_usd=_num((pair.get("liquidity") or {}).get("usd")),
    )


class ScreenerSource:
    """Polls the pairs screener and exposes the candidate-source snapshot"""

    def __init__(self, url: str, chain_id: str = "solana", timeout_seconds: float = 15.0):
        self.url = url
        self.chain_id = chain_id
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

    async def fetch_pairs(self) -> List[Dict[str, Any]]:
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        async with self.session.get(self.url) as response:
            if response.status != 200:
                raise ThinScalpError(f"Screener fetch failed ({response.status})")
            data = await response.json()
        return data.get("pairs") or []

    async def snapshot(self, now: float = None) -> Dict[str, CandidateMetrics]:
        pairs = await self.fetch_pairs()
        snapshot: Dict[str, CandidateMetrics] = {}
        for pair in pairs:
            candidate = metrics_from_pair(pair, self.chain_id)
            if candidate and candidate.instrument_id not in snapshot:
                snapshot[candidate.instrument_id] = candidate
        logger.debug(f"Screener returned {len(pairs)} pairs, {len(snapshot)} usable")
        return snapshot

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
