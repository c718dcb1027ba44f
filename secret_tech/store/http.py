"""
Store adapter that talks to a remote key-value service over HTTP.

Endpoints:
    GET  {base}/available   -> {"available": bool}
    GET  {base}/data/{key}  -> raw bytes, 404 if missing
    PUT  {base}/data/{key}  -> 200/204 on success
"""

import asyncio
import logging
from urllib.parse import quote

import requests

from secret_tech.errors import StoreError, WriteFailed
from secret_tech.store.base import StoreClient

logger = logging.getLogger(__name__)


class HttpStore(StoreClient):
    """Blocking ``requests`` calls run in worker threads."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    async def probe_available(self) -> bool:
        try:
            response = await asyncio.to_thread(
                self.session.get, f"{self.base_url}/available", timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning("Store probe failed: %s", e)
            return False
        if response.status_code != 200:
            return False
        try:
            return bool(response.json().get("available", False))
        except ValueError:
            return False

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self.session.get, self._url(key), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise StoreError(f"GET {key} failed: {e}") from e

        if response.status_code == 404:
            return b""
        if response.status_code != 200:
            raise StoreError(f"GET {key} returned HTTP {response.status_code}")
        return response.content

    async def set(self, key: str, value: bytes) -> None:
        try:
            response = await asyncio.to_thread(
                self.session.put,
                self._url(key),
                data=value,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WriteFailed(f"PUT {key} failed: {e}") from e

        if response.status_code not in (200, 204):
            raise WriteFailed(f"PUT {key} returned HTTP {response.status_code}")
        logger.debug("PUT %s (%d bytes)", key, len(value))

    # compare_and_set: inherited read-compare-write, the service has no CAS

    def _url(self, key: str) -> str:
        return f"{self.base_url}/data/{quote(key, safe='')}"
