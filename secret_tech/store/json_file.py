"""Store backed by a single JSON file."""

import asyncio
import base64
import binascii
import json
import logging
import os
from pathlib import Path

from secret_tech.errors import StoreError
from secret_tech.store.base import StoreClient

logger = logging.getLogger(__name__)


class JsonFileStore(StoreClient):
    """
    Keeps every key in one JSON object, values base64-encoded.

    Writes go to a temporary file that replaces the old one, so readers never
    see a half-written file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def probe_available(self) -> bool:
        parent = self.path.parent
        return parent.is_dir() and os.access(parent, os.W_OK)

    async def get(self, key: str) -> bytes:
        data = await asyncio.to_thread(self._read)
        return _decode_value(key, data.get(key))

    async def set(self, key: str, value: bytes) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = base64.b64encode(value).decode("ascii")
            await asyncio.to_thread(self._write, data)

    async def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if _decode_value(key, data.get(key)) != expected:
                return False
            data[key] = base64.b64encode(value).decode("ascii")
            await asyncio.to_thread(self._write, data)
            return True

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Store file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e
        logger.debug("Wrote %d keys to %s", len(data), self.path)


def _decode_value(key: str, raw: str | None) -> bytes:
    if raw is None:
        return b""
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise StoreError(f"Stored value for {key} is not base64") from e
