"""
Civilization creation, research and attribute reveal.

Writes only happen after every precondition has passed, and a failing
operation never leaves the previously persisted record altered.
"""

import logging
import math
import secrets
import string
import time
from collections.abc import Callable
from enum import Enum

from secret_tech.auth import Authorizer
from secret_tech.cipher import AttributeCipher, InvalidToken, default_cipher
from secret_tech.config import Settings
from secret_tech.errors import (
    AlreadyDiscovered,
    CivilizationNotFound,
    InvalidCivilization,
    NotAuthorized,
    NotConnected,
    PrerequisiteUnmet,
    StaleRecord,
    StoreError,
    WriteFailed,
)
from secret_tech.models import Civilization
from secret_tech.serializer import (
    INDEX_KEY,
    ParseFailure,
    decode_index,
    decode_record,
    encode_index,
    encode_record,
    record_key,
)
from secret_tech.session import Session
from secret_tech.store.base import StoreClient, bounded
from secret_tech.sync import DirectorySynchronizer
from secret_tech.tech_tree import TechTree, default_tree

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


class Attribute(Enum):
    """Encrypted attributes of a civilization."""

    RESEARCH_POINTS = "research_points"
    MILITARY_POWER = "military_power"


def new_civilization_id(now_ms: int | None = None) -> str:
    """``<unix-ms>-<4 base36 chars>``."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(4))
    return f"{now_ms}-{suffix}"


class CivilizationLifecycle:
    """Orchestrates the store, the authorizer and the tech tree."""

    def __init__(
        self,
        store: StoreClient,
        settings: Settings,
        synchronizer: DirectorySynchronizer | None = None,
        authorizer: Authorizer | None = None,
        tree: TechTree | None = None,
        cipher: AttributeCipher = default_cipher,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self.synchronizer = synchronizer or DirectorySynchronizer(store, settings)
        self.authorizer = authorizer or Authorizer(settings)
        self.tree = tree or default_tree()
        self.cipher = cipher
        self.clock = clock

    # Creation

    async def create(
        self,
        name: str,
        initial_points: int | float,
        initial_power: int | float,
        owner: str | None,
    ) -> str:
        """Create and index a new civilization; returns its id."""
        if not owner:
            raise NotConnected()
        if not name or not name.strip():
            raise InvalidCivilization("Civilization name must not be empty")
        for label, value in (("points", initial_points), ("power", initial_power)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidCivilization(f"Initial {label} must be a number")
            if not math.isfinite(value):
                raise InvalidCivilization(f"Initial {label} must be finite")

        now = self.clock()
        civ = Civilization(
            id=new_civilization_id(int(now * 1000)),
            name=name.strip(),
            encrypted_tech_points=self.cipher.encrypt(initial_points),
            encrypted_military_power=self.cipher.encrypt(initial_power),
            discovered_technologies=[],
            last_updated=int(now),
            owner=owner,
        )
        key = record_key(civ.id)

        await self._write(key, encode_record(civ))
        try:
            await self._append_to_index(civ.id)
        except WriteFailed:
            await self._rollback_record(key)
            raise

        logger.info("Created civilization %s (%s) for %s", civ.id, civ.name, owner)
        await self.synchronizer.refresh(owner)
        return civ.id

    async def _append_to_index(self, civ_id: str) -> None:
        attempts = max(1, self.settings.index_append_attempts)
        for attempt in range(1, attempts + 1):
            try:
                current = await self._read(INDEX_KEY)
            except StoreError as e:
                raise WriteFailed(f"Could not read index: {e}") from e
            ids = decode_index(current)
            if isinstance(ids, ParseFailure):
                raise WriteFailed(f"Refusing to overwrite malformed index: {ids.reason}")

            updated = encode_index([*ids, civ_id])
            try:
                swapped = await bounded(
                    self.store.compare_and_set(INDEX_KEY, current, updated),
                    self.settings.store_timeout,
                    INDEX_KEY,
                )
            except StoreError as e:
                raise WriteFailed(f"Index write failed: {e}") from e

            if swapped:
                return
            logger.info(
                "Index changed while appending %s (attempt %d/%d)",
                civ_id,
                attempt,
                attempts,
            )

        raise WriteFailed(f"Index kept changing; gave up after {attempts} attempts")

    async def _rollback_record(self, key: str) -> None:
        # An empty payload reads as "missing"
        try:
            await self._write(key, b"")
            logger.warning("Rolled back orphaned record %s", key)
        except WriteFailed as e:
            logger.error("Could not roll back orphaned record %s: %s", key, e)

    # Research

    async def research_tech(
        self, tech_id: str, civ: Civilization, session: Session
    ) -> Civilization:
        """Research ``tech_id`` for ``civ`` and persist it; returns the stored record."""
        if not session.connected:
            raise NotConnected()
        tech = self.tree.get(tech_id)

        key = record_key(civ.id)
        raw = await self._read(key)
        stored = self._decode_stored(civ.id, raw)

        if not stored.is_owned_by(session.address):
            raise NotAuthorized(f"{session.address} does not own civilization {civ.id}")
        if stored.version != civ.version:
            raise StaleRecord(
                f"Civilization {civ.id} is at version {stored.version}, "
                f"expected {civ.version}; sync and retry"
            )

        # Cheap checks first so the user is not asked to sign for nothing
        if stored.has_discovered(tech.id):
            raise AlreadyDiscovered(tech.id)
        missing = self.tree.missing_prerequisites(tech, stored.discovered_technologies)
        if missing:
            raise PrerequisiteUnmet(tech.id, missing)

        points = await self._reveal_token(stored, stored.encrypted_tech_points, session)

        transition = self.tree.research(
            tech.id,
            stored,
            points,
            identity=session.address,
            now=int(self.clock()),
        )
        updated = transition.apply(stored, self.cipher.encrypt(transition.points_after))

        try:
            swapped = await bounded(
                self.store.compare_and_set(key, raw, encode_record(updated)),
                self.settings.store_timeout,
                key,
            )
        except StoreError as e:
            raise WriteFailed(f"Could not save {key}: {e}") from e
        if not swapped:
            raise StaleRecord(f"Civilization {civ.id} changed during research")

        logger.info(
            "%s researched %s (%s -> %s points)",
            civ.id,
            tech.id,
            transition.points_before,
            transition.points_after,
        )
        session.directory = await self.synchronizer.refresh(session.address)
        return updated

    # Reveal

    async def reveal(
        self, civ: Civilization, attribute: Attribute, session: Session
    ) -> int | float:
        """Decrypt one attribute of a civilization owned by the session identity."""
        if not session.connected:
            raise NotAuthorized("No connected identity")
        if not civ.is_owned_by(session.address):
            raise NotAuthorized("Only the owner can reveal a civilization's attributes")

        if attribute is Attribute.RESEARCH_POINTS:
            token = civ.encrypted_tech_points
        else:
            token = civ.encrypted_military_power
        return await self._reveal_token(civ, token, session)

    async def _reveal_token(
        self, civ: Civilization, token: str, session: Session
    ) -> int | float:
        try:
            return await self.authorizer.reveal(token, session)
        except InvalidToken as e:
            raise InvalidCivilization(
                f"Civilization {civ.id} holds an unreadable attribute"
            ) from e

    # Store helpers

    def _decode_stored(self, civ_id: str, raw: bytes) -> Civilization:
        if not raw:
            raise CivilizationNotFound(civ_id)
        stored = decode_record(civ_id, raw)
        if isinstance(stored, ParseFailure):
            raise CivilizationNotFound(civ_id, stored.reason)
        return stored

    async def _read(self, key: str) -> bytes:
        return await bounded(self.store.get(key), self.settings.store_timeout, key)

    async def _write(self, key: str, value: bytes) -> None:
        try:
            await bounded(self.store.set(key, value), self.settings.store_timeout, key)
        except WriteFailed:
            raise
        except StoreError as e:
            raise WriteFailed(f"Could not save {key}: {e}") from e
