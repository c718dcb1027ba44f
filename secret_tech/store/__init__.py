"""Key-value store clients."""

from secret_tech.store.base import StoreClient, bounded
from secret_tech.store.json_file import JsonFileStore
from secret_tech.store.memory import InMemoryStore

__all__ = ["InMemoryStore", "JsonFileStore", "StoreClient", "bounded"]
