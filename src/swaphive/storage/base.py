"""Scoped key-value storage for persisted client state.

Values are JSON-serializable Python objects. Every key is prefixed with the
store's scope so several clients can share one backing database.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract scoped key-value store."""

    def __init__(self, scope: str = "swaphive"):
        self.scope = scope

    def scoped(self, key: str) -> str:
        return f"{self.scope}:{key}" if self.scope else key

    @abstractmethod
    async def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get a stored value, or ``default`` if absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key (no-op if absent)."""
        pass


class MemoryStore(KeyValueStore):
    """Process-local store. Values are deep-copied in and out."""

    def __init__(self, scope: str = "swaphive"):
        super().__init__(scope)
        self._data: dict[str, Any] = {}

    async def get(self, key: str, default: Optional[Any] = None) -> Any:
        full_key = self.scoped(key)
        if full_key not in self._data:
            return default
        return copy.deepcopy(self._data[full_key])

    async def set(self, key: str, value: Any) -> None:
        self._data[self.scoped(key)] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(self.scoped(key), None)
