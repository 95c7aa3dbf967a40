"""
Durable JSON record store - each record is one file rewritten in full
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from loguru import logger


class JsonRecordStore:
    """Reads and atomically rewrites a single JSON document"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self, default: Optional[Any] = None) -> Any:
        """
        Load the stored document.

        Args:
            default: Value returned when the file is missing or unreadable

        Returns:
            Parsed JSON document or ``default``
        """
        if not self.path.exists():
            return default

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt record {self.path.name}: {e} - using defaults")
            return default

    def save(self, document: Any) -> None:
        """
        Write the document atomically.

        The temp file is fsynced and then renamed over the target, so a crash
        leaves either the previous or the new document, never a partial one.
        """
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.stem}_",
            suffix=".json.tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.debug(f"Saved {self.path.name}")
