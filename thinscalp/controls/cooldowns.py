"""
Entry cooldowns - global spacing between autonomous entries plus per-mint retry spacing
"""
import time
from typing import Callable

from loguru import logger

from thinscalp.controls.autopilot_config import AutopilotConfig, AutopilotConfigStore


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


class EntryCooldowns:
    """Rate limiter backed by the persisted AutopilotConfig"""

    def __init__(
        self,
        config: AutopilotConfig,
        store: AutopilotConfigStore,
        clock: Callable[[], int] = wall_clock_ms,
    ):
        self.config = config
        self.store = store
        self.clock = clock

    def now_ms(self) -> int:
        return self.clock()

    def next_entry_in_ms(self, now_ms: int = None) -> int:
        now_ms = self.now_ms() if now_ms is None else now_ms
        return max(0, self.config.cooldown_ms - (now_ms - self.config.last_entry_at_ms))

    def global_ready(self, now_ms: int = None) -> bool:
        return self.next_entry_in_ms(now_ms) == 0

    def retry_ready(self, instrument_id: str, now_ms: int = None) -> bool:
        now_ms = self.now_ms() if now_ms is None else now_ms
        last = self.config.last_attempted.get(instrument_id, 0)
        return now_ms - last >= self.config.retry_cooldown_ms

    def record_attempt(self, instrument_id: str, now_ms: int = None):
        """Stamp an entry attempt; stamped before trying so failures also cool down"""
        now_ms = self.now_ms() if now_ms is None else now_ms
        self.config.last_attempted[instrument_id] = now_ms
        self.store.save(self.config)

    def record_entry(self, now_ms: int = None):
        now_ms = self.now_ms() if now_ms is None else now_ms
        self.config.last_entry_at_ms = now_ms
        self.store.save(self.config)

    def prune(self, now_ms: int = None) -> int:
        """Drop retry stamps that no longer block anything"""
        now_ms = self.now_ms() if now_ms is None else now_ms
        expired = [
            mint for mint, ts in self.config.last_attempted.items()
            if now_ms - ts >= self.config.retry_cooldown_ms
        ]
        if not expired:
            return 0
        for mint in expired:
            del self.config.last_attempted[mint]
        self.store.save(self.config)
        logger.debug(f"Pruned {len(expired)} expired retry stamps")
        return len(expired)
