"""Store client interface."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

from secret_tech.errors import StoreTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreClient(ABC):
    """
    An opaque, non-transactional key-value store.

    ``get`` returns ``b""`` for missing keys. Implementations raise
    ``StoreError`` (or a subclass) when a call fails.
    """

    @abstractmethod
    async def probe_available(self) -> bool:
        """True if the store is reachable and serving requests."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Value stored under ``key``, or empty bytes."""

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``."""

    async def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        """
        Write ``value`` only if ``key`` currently holds ``expected``.

        The default is a plain read-compare-write and is not atomic; stores
        that can do better override it.
        """
        current = await self.get(key)
        if current != expected:
            return False
        await self.set(key, value)
        return True


async def bounded(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """Await a store call, raising ``StoreTimeout`` after ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Store call timed out after %ss: %s", timeout, what)
        raise StoreTimeout(f"{what} timed out after {timeout}s") from e
