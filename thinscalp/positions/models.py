"""
Position entity tracked by the monitor
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_utc(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class Position:
    """One open trade, keyed by mint in the position store"""
    instrument_id: str
    entry_cost_native: float
    entry_received_raw: int
    take_profit_pct: float
    stop_loss_pct: float
    opened_at: datetime = field(default_factory=utc_now)
    last_evaluated_at: Optional[datetime] = None
    partial_exit_taken: bool = False
    profile: str = ""
    source: str = "manual"  # manual | autopilot

    @property
    def state(self) -> str:
        return "PARTIAL" if self.partial_exit_taken else "OPEN"

    @property
    def is_monitorable(self) -> bool:
        return self.entry_cost_native > 0

    def pnl_pct(self, estimated_value_native: float) -> float:
        """Percent change of the estimated exit value against the entry cost"""
        return (estimated_value_native - self.entry_cost_native) / self.entry_cost_native * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instrument_id": self.instrument_id,
            "entry_cost_native": self.entry_cost_native,
            "entry_received_raw": str(self.entry_received_raw),
            "take_profit_pct": self.take_profit_pct,
            "stop_loss_pct": self.stop_loss_pct,
            "opened_at": self.opened_at.isoformat(),
            "last_evaluated_at": self.last_evaluated_at.isoformat() if self.last_evaluated_at else None,
            "partial_exit_taken": self.partial_exit_taken,
            "profile": self.profile,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            instrument_id=data["instrument_id"],
            entry_cost_native=float(data["entry_cost_native"]),
            entry_received_raw=int(data["entry_received_raw"]),
            take_profit_pct=float(data["take_profit_pct"]),
            stop_loss_pct=float(data["stop_loss_pct"]),
            opened_at=_parse_utc(data.get("opened_at")) or utc_now(),
            last_evaluated_at=_parse_utc(data.get("last_evaluated_at")),
            partial_exit_taken=bool(data.get("partial_exit_taken", False)),
            profile=data.get("profile", ""),
            source=data.get("source", "manual"),
        )
