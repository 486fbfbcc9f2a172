"""
JSON file persistence for the rule collection.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Sequence

from shared.errors import StorageError
from shared.logging import get_logger
from .base import RulePersistence
from ..rules.models import Rule


class JsonFilePersistence(RulePersistence):
    """Stores the rule collection as a JSON array in a single file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never observe a half-written collection.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger("routing.persistence.file")

    async def load_all(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def save_all(self, rules: Sequence[Rule]) -> None:
        records = [rule.to_wire() for rule in rules]
        await asyncio.to_thread(self._write, records)

    async def health_check(self) -> bool:
        directory = self.path.parent
        return directory.is_dir() and os.access(directory, os.W_OK)

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            self.logger.info("Rules file not found, starting empty", path=str(self.path))
            return []

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error("Failed to read rules file", path=str(self.path), error=str(e))
            raise StorageError("Rules file is unreadable", details={"path": str(self.path)}) from e

        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise StorageError(
                "Rules file must contain a JSON array of rule objects",
                details={"path": str(self.path)}
            )

        self.logger.info("Rules file loaded", path=str(self.path), count=len(data))
        return data

    def _write(self, records: List[Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(records, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            self.logger.error("Failed to write rules file", path=str(self.path), error=str(e))
            raise StorageError("Rules file could not be written", details={"path": str(self.path)}) from e
