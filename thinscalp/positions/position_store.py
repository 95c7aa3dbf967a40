"""
Position Store - mint -> Position, persisted in full after every mutation
"""
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from loguru import logger

from thinscalp.database.json_store import JsonRecordStore
from thinscalp.positions.models import Position


class PositionStore:
    """Persistent mapping of open positions"""

    def __init__(self, path: Path):
        self._record = JsonRecordStore(path)
        self._positions: Dict[str, Position] = {}
        self._load()

    def _load(self):
        raw = self._record.load(default={}) or {}
        for mint, data in raw.items():
            try:
                self._positions[mint] = Position.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Dropping unreadable position {mint}: {e}")
        if self._positions:
            logger.info(f"Loaded {len(self._positions)} open positions")

    def _persist(self):
        self._record.save({mint: p.to_dict() for mint, p in self._positions.items()})

    def __contains__(self, instrument_id: str) -> bool:
        return instrument_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(list(self._positions.values()))

    def get(self, instrument_id: str) -> Optional[Position]:
        return self._positions.get(instrument_id)

    def instrument_ids(self) -> List[str]:
        return list(self._positions.keys())

    def put(self, position: Position):
        """Insert or replace a position and persist"""
        self._positions[position.instrument_id] = position
        self._persist()

    def save(self, position: Position):
        """Persist an in-place mutation of a tracked position"""
        if position.instrument_id not in self._positions:
            logger.warning(f"Not saving {position.instrument_id}: no longer tracked")
            return
        self._persist()

    def remove(self, instrument_id: str) -> Optional[Position]:
        """Delete a position and persist; returns it or None if absent"""
        position = self._positions.pop(instrument_id, None)
        if position is not None:
            self._persist()
        return position
