"""
Autopilot configuration - owned by the process root, persisted on every change
"""
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from thinscalp.database.json_store import JsonRecordStore


class HorizonGate(BaseModel):
    """Entry gate and score weights for one momentum horizon"""
    seconds: int = Field(..., gt=0)
    min_buys: int = Field(0, ge=0)
    min_change_pct: float = 0.0
    buy_weight: float = Field(1.0, ge=0)
    change_weight: float = Field(1.0, ge=0)


class AutopilotConfig(BaseModel):
    """Autonomous entry settings and bookkeeping"""
    enabled: bool = False
    budget_native: float = Field(0.02, ge=0)
    max_open_positions: int = Field(3, ge=0)
    gates: Dict[str, HorizonGate] = Field(default_factory=dict)
    min_liquidity_usd: float = Field(0.0, ge=0)
    cooldown_ms: int = Field(30 * 60 * 1000, ge=0)
    retry_cooldown_ms: int = Field(30 * 60 * 1000, ge=0)
    blacklist: List[str] = Field(default_factory=list)
    last_entry_at_ms: int = 0
    last_attempted: Dict[str, int] = Field(default_factory=dict)

    def sorted_gates(self) -> List[tuple]:
        """(name, gate) pairs, shortest horizon first"""
        return sorted(self.gates.items(), key=lambda item: item[1].seconds)

    def is_blacklisted(self, instrument_id: str) -> bool:
        return instrument_id in self.blacklist


class AutopilotConfigStore:
    """Loads and persists the AutopilotConfig record"""

    def __init__(self, path: Path, defaults: AutopilotConfig):
        self._record = JsonRecordStore(path)
        self.defaults = defaults

    def load(self) -> AutopilotConfig:
        """
        Load the persisted config merged over the defaults.

        The first run writes the defaults so later edits start from them.
        """
        raw: Optional[dict] = self._record.load(default=None)
        if raw is None:
            config = self.defaults.model_copy(deep=True)
            self.save(config)
            logger.info("Autopilot config initialised from defaults")
            return config

        merged = self.defaults.model_dump()
        merged.update(raw)
        try:
            return AutopilotConfig.model_validate(merged)
        except ValidationError as e:
            logger.error(f"Invalid autopilot config on disk, using defaults: {e}")
            return self.defaults.model_copy(deep=True)

    def save(self, config: AutopilotConfig):
        self._record.save(config.model_dump(mode="json"))
