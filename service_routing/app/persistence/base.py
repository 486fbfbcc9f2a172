"""
Persistence interface for the rule collection.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from ..rules.models import Rule


class RulePersistence(ABC):
    """Durable medium holding the ordered rule collection.

    Implementations always write the whole collection; partial writes must
    never become visible.
    """

    async def start(self):
        """Open connections or files."""

    async def stop(self):
        """Release resources."""

    @abstractmethod
    async def load_all(self) -> List[Dict[str, Any]]:
        """Return the raw persisted records in stored order.

        Raises StorageError when the medium is unreadable or corrupt.
        """

    @abstractmethod
    async def save_all(self, rules: Sequence[Rule]) -> None:
        """Replace the persisted collection. Raises StorageError on failure."""

    async def health_check(self) -> bool:
        return True
