"""Pytest configuration and fixtures."""

import pytest

from secret_tech.cipher import encrypt
from secret_tech.config import Settings
from secret_tech.lifecycle import CivilizationLifecycle
from secret_tech.models import Civilization
from secret_tech.serializer import INDEX_KEY, encode_index, encode_record, record_key
from secret_tech.session import Session
from secret_tech.signers import HmacSigner
from secret_tech.store import InMemoryStore

PLAYER = "0xA11CE00000000000000000000000000000000001"
RIVAL = "0xB0B0000000000000000000000000000000000002"
NOW = 1_700_000_000


def seed(store: InMemoryStore, *civs: Civilization, index: list[str] | None = None):
    """Write records and the index directly into an in-memory store."""
    for civ in civs:
        store.data[record_key(civ.id)] = encode_record(civ)
    ids = index if index is not None else [civ.id for civ in civs]
    store.data[INDEX_KEY] = encode_index(ids)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_address="0x5703E00000000000000000000000000000000003",
        chain_id=31337,
        store_timeout=1.0,
        sign_timeout=1.0,
        decrypt_timeout=1.0,
        decrypt_latency=0.0,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def signer() -> HmacSigner:
    return HmacSigner(PLAYER, b"player-secret")


@pytest.fixture
def session(signer: HmacSigner, settings: Settings) -> Session:
    return Session.connect(signer, settings, now=NOW)


@pytest.fixture
def roma() -> Civilization:
    """Player civilization from the research scenarios."""
    return Civilization(
        id="a",
        name="Roma",
        encrypted_tech_points=encrypt(250),
        encrypted_military_power=encrypt(10),
        discovered_technologies=["mining"],
        last_updated=NOW - 3600,
        owner=PLAYER,
    )


@pytest.fixture
def lifecycle(store: InMemoryStore, settings: Settings) -> CivilizationLifecycle:
    return CivilizationLifecycle(store, settings, clock=lambda: float(NOW + 500))
