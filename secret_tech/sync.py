"""
Directory synchronization.

Loads the id index and every record it names into a ``Directory``. The store
is eventually consistent, so a load never fails as a whole: an unavailable
store gives an empty directory and each record that cannot be read is
reported and skipped.
"""

import asyncio
import logging

from secret_tech.config import Settings
from secret_tech.errors import StoreError
from secret_tech.models import Civilization, Directory, LoadFailure, LoadReport
from secret_tech.serializer import (
    INDEX_KEY,
    ParseFailure,
    decode_index,
    decode_record,
    record_key,
)
from secret_tech.store.base import StoreClient, bounded

logger = logging.getLogger(__name__)


class DirectorySynchronizer:
    """
    Builds directories from the store.

    Overlapping ``load`` calls for the same identity share one in-flight load.
    ``refresh`` starts a new generation, so loads begun before a write are not
    reused after it, and ``latest`` never goes back to an older generation.
    """

    def __init__(self, store: StoreClient, settings: Settings):
        self.store = store
        self.settings = settings
        self.latest: Directory | None = None
        self._generation = 0
        self._in_flight: dict[tuple[int, str | None], asyncio.Task] = {}

    @property
    def generation(self) -> int:
        return self._generation

    async def load(self, identity: str | None = None) -> Directory:
        """Load the directory, joining a load already running for this generation."""
        flight_key = (self._generation, identity)
        task = self._in_flight.get(flight_key)
        if task is None:
            task = asyncio.ensure_future(self._load(identity, self._generation))
            self._in_flight[flight_key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(flight_key, None))
        else:
            logger.debug("Joining in-flight directory load (generation %d)", flight_key[0])

        # Shield so one caller's cancellation does not cancel the shared load
        return await asyncio.shield(task)

    async def refresh(self, identity: str | None = None) -> Directory:
        """Load from scratch, ignoring loads started before this call."""
        self._generation += 1
        return await self.load(identity)

    async def _load(self, identity: str | None, generation: int) -> Directory:
        report = LoadReport()
        directory = Directory(identity=identity, report=report, generation=generation)

        try:
            available = await bounded(
                self.store.probe_available(), self.settings.store_timeout, "probe"
            )
        except StoreError as e:
            logger.warning("Store probe failed: %s", e)
            available = False

        if not available:
            logger.info("Store unavailable, returning empty directory")
            report.store_available = False
            return self._publish(directory)

        try:
            payload = await bounded(
                self.store.get(INDEX_KEY), self.settings.store_timeout, INDEX_KEY
            )
        except StoreError as e:
            logger.warning("Could not fetch index: %s", e)
            report.failures.append(LoadFailure(INDEX_KEY, str(e)))
            return self._publish(directory)

        ids = decode_index(payload)
        if isinstance(ids, ParseFailure):
            logger.warning("Could not parse index: %s", ids.reason)
            report.failures.append(LoadFailure(ids.key, ids.reason))
            return self._publish(directory)

        unique_ids = list(dict.fromkeys(ids))
        if len(unique_ids) != len(ids):
            logger.debug("Index lists %d duplicate ids", len(ids) - len(unique_ids))
        report.index_size = len(unique_ids)

        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_fetches))
        results = await asyncio.gather(
            *(self._load_one(civ_id, semaphore) for civ_id in unique_ids)
        )

        for result in results:
            if isinstance(result, Civilization):
                directory.civilizations.append(result)
            else:
                report.failures.append(result)

        # Stable sort keeps index order among equal timestamps
        directory.civilizations.sort(key=lambda c: c.last_updated, reverse=True)
        report.loaded = len(directory.civilizations)

        logger.info(
            "Loaded %d of %d civilizations (%d failures)",
            report.loaded,
            report.index_size,
            len(report.failures),
        )
        return self._publish(directory)

    async def _load_one(
        self, civ_id: str, semaphore: asyncio.Semaphore
    ) -> Civilization | LoadFailure:
        key = record_key(civ_id)
        async with semaphore:
            try:
                payload = await bounded(
                    self.store.get(key), self.settings.store_timeout, key
                )
            except StoreError as e:
                logger.warning("Error loading %s: %s", key, e)
                return LoadFailure(key, str(e))

        if not payload:
            logger.warning("Indexed record %s is missing", key)
            return LoadFailure(key, "record missing")

        try:
            record = decode_record(civ_id, payload)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Error decoding %s: %s", key, e)
            return LoadFailure(key, f"undecodable record: {e}")
        if isinstance(record, ParseFailure):
            logger.warning("Error parsing %s: %s", key, record.reason)
            return LoadFailure(record.key, record.reason)
        return record

    def _publish(self, directory: Directory) -> Directory:
        if self.latest is None or directory.generation >= self.latest.generation:
            self.latest = directory
        else:
            logger.debug(
                "Discarding stale directory (generation %d < %d)",
                directory.generation,
                self.latest.generation,
            )
        return directory
