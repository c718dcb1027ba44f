"""In-process store, used for tests and local play."""

import asyncio

from secret_tech.errors import StoreUnavailable
from secret_tech.store.base import StoreClient


class InMemoryStore(StoreClient):
    """Dict-backed store with an atomic compare-and-set."""

    def __init__(self, data: dict[str, bytes] | None = None, available: bool = True):
        self.data: dict[str, bytes] = dict(data or {})
        self.available = available
        self._lock = asyncio.Lock()

    async def probe_available(self) -> bool:
        return self.available

    async def get(self, key: str) -> bytes:
        self._check()
        return self.data.get(key, b"")

    async def set(self, key: str, value: bytes) -> None:
        self._check()
        async with self._lock:
            self.data[key] = bytes(value)

    async def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        self._check()
        async with self._lock:
            if self.data.get(key, b"") != expected:
                return False
            self.data[key] = bytes(value)
            return True

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable()
