"""Persisted client state (swap history)."""

from swaphive.storage.base import KeyValueStore, MemoryStore
from swaphive.storage.sql import SQLStore

__all__ = ["KeyValueStore", "MemoryStore", "SQLStore"]
