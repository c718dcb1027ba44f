"""Tests for civilization creation, research and reveal."""

import json
from dataclasses import replace

import pytest

from secret_tech.cipher import decrypt, encrypt
from secret_tech.errors import (
    AlreadyDiscovered,
    CivilizationNotFound,
    InsufficientPoints,
    InvalidCivilization,
    NotAuthorized,
    NotConnected,
    PrerequisiteUnmet,
    StaleRecord,
    StoreError,
    TechnologyNotFound,
    WriteFailed,
)
from secret_tech.lifecycle import Attribute, CivilizationLifecycle, new_civilization_id
from secret_tech.serializer import (
    INDEX_KEY,
    decode_index,
    decode_record,
    encode_record,
    record_key,
)
from secret_tech.session import Session
from secret_tech.signers import HmacSigner
from secret_tech.store import InMemoryStore

from conftest import NOW, PLAYER, RIVAL, seed


class IndexRacingStore(InMemoryStore):
    """Another client appends to the index right before each of our swaps."""

    def __init__(self, races: int, **kwargs):
        super().__init__(**kwargs)
        self.races = races

    async def compare_and_set(self, key, expected, value):
        if key == INDEX_KEY and self.races:
            self.races -= 1
            current = json.loads(self.data.get(key, b"[]") or b"[]")
            self.data[key] = json.dumps(current + [f"other-{self.races}"]).encode()
        return await super().compare_and_set(key, expected, value)


class RejectingIndexStore(InMemoryStore):
    """Accepts record writes but refuses to write the index."""

    async def compare_and_set(self, key, expected, value):
        if key == INDEX_KEY:
            raise StoreError("index write rejected")
        return await super().compare_and_set(key, expected, value)


class UnreadableIndexStore(InMemoryStore):
    """Accepts record writes but cannot read the index."""

    async def get(self, key):
        if key == INDEX_KEY:
            raise StoreError("index read failed")
        return await super().get(key)


class SignatureCounter(HmacSigner):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.count = 0

    async def sign(self, message):
        self.count += 1
        return await super().sign(message)


def test_new_civilization_id_shape():
    civ_id = new_civilization_id(1700000000123)
    prefix, suffix = civ_id.split("-")
    assert prefix == "1700000000123"
    assert len(suffix) == 4
    assert suffix.isalnum() and suffix == suffix.lower()


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def test_create_writes_record_and_appends_index(store, lifecycle):
    seed(store, index=["existing"])

    civ_id = await lifecycle.create("Roma", 250, 10, PLAYER)

    assert decode_index(store.data[INDEX_KEY]) == ["existing", civ_id]
    civ = decode_record(civ_id, store.data[record_key(civ_id)])
    assert civ.name == "Roma"
    assert civ.owner == PLAYER
    assert civ.discovered_technologies == []
    assert civ.last_updated == NOW + 500
    assert civ.version == 0
    assert decrypt(civ.encrypted_tech_points) == 250
    assert decrypt(civ.encrypted_military_power) == 10


async def test_create_resyncs_directory(store, lifecycle):
    civ_id = await lifecycle.create("Roma", 250, 10, PLAYER)
    assert lifecycle.synchronizer.latest.player_civilization().id == civ_id


async def test_create_requires_owner(store, lifecycle):
    with pytest.raises(NotConnected):
        await lifecycle.create("Roma", 250, 10, None)
    assert store.data == {}


@pytest.mark.parametrize(
    "name,points,power",
    [("", 1, 1), ("   ", 1, 1), ("Roma", float("nan"), 1), ("Roma", 1, "lots")],
)
async def test_create_rejects_bad_input_before_writing(store, lifecycle, name, points, power):
    with pytest.raises(InvalidCivilization):
        await lifecycle.create(name, points, power, PLAYER)
    assert store.data == {}


async def test_create_retries_index_on_contention(settings):
    store = IndexRacingStore(races=2)
    lifecycle = CivilizationLifecycle(store, settings)

    civ_id = await lifecycle.create("Roma", 250, 10, PLAYER)

    ids = decode_index(store.data[INDEX_KEY])
    assert ids[-1] == civ_id
    assert set(ids[:-1]) == {"other-0", "other-1"}


async def test_create_gives_up_and_rolls_back(settings):
    store = IndexRacingStore(races=10)
    lifecycle = CivilizationLifecycle(store, replace(settings, index_append_attempts=3))

    with pytest.raises(WriteFailed):
        await lifecycle.create("Roma", 250, 10, PLAYER)

    records = {k: v for k, v in store.data.items() if k != INDEX_KEY}
    assert len(records) == 1
    assert list(records.values()) == [b""]


async def test_rejected_index_write_rolls_back_record(settings):
    store = RejectingIndexStore()
    lifecycle = CivilizationLifecycle(store, settings)

    with pytest.raises(WriteFailed):
        await lifecycle.create("Roma", 250, 10, PLAYER)

    assert INDEX_KEY not in store.data
    assert all(v == b"" for v in store.data.values())


async def test_unreadable_index_rolls_back_record(settings):
    store = UnreadableIndexStore()
    lifecycle = CivilizationLifecycle(store, settings)

    with pytest.raises(WriteFailed, match="index read failed"):
        await lifecycle.create("Roma", 250, 10, PLAYER)

    assert INDEX_KEY not in store.data
    records = list(store.data.values())
    assert records == [b""]


async def test_create_refuses_to_overwrite_malformed_index(store, lifecycle):
    store.data[INDEX_KEY] = b"{corrupt"

    with pytest.raises(WriteFailed, match="malformed"):
        await lifecycle.create("Roma", 250, 10, PLAYER)

    assert store.data[INDEX_KEY] == b"{corrupt"


async def test_create_fails_when_store_unavailable(settings):
    lifecycle = CivilizationLifecycle(InMemoryStore(available=False), settings)
    with pytest.raises(WriteFailed):
        await lifecycle.create("Roma", 250, 10, PLAYER)


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------


async def test_research_scenario_metallurgy(store, lifecycle, session, roma):
    seed(store, roma)

    updated = await lifecycle.research_tech("metallurgy", roma, session)

    stored = decode_record("a", store.data[record_key("a")])
    assert stored == updated
    assert stored.discovered_technologies == ["mining", "metallurgy"]
    assert decrypt(stored.encrypted_tech_points) == 150
    assert decrypt(stored.encrypted_military_power) == 10
    assert stored.last_updated == NOW + 500
    assert stored.version == 1
    # directory re-synced into the session
    assert session.directory.find("a").discovered_technologies == ["mining", "metallurgy"]


async def test_research_scenario_architecture_unmet(store, lifecycle, session, roma):
    seed(store, roma)
    before = dict(store.data)

    with pytest.raises(PrerequisiteUnmet):
        await lifecycle.research_tech("architecture", roma, session)

    assert store.data == before


async def test_unmet_prerequisite_does_not_ask_for_signature(store, settings, roma):
    signer = SignatureCounter(PLAYER, b"k")
    session = Session.connect(signer, settings, now=NOW)
    seed(store, roma)

    with pytest.raises(PrerequisiteUnmet):
        await CivilizationLifecycle(store, settings).research_tech(
            "architecture", roma, session
        )
    assert signer.count == 0


async def test_research_insufficient_points(store, lifecycle, session, roma):
    poor = replace(roma, encrypted_tech_points=encrypt(99))
    seed(store, poor)
    before = dict(store.data)

    with pytest.raises(InsufficientPoints):
        await lifecycle.research_tech("metallurgy", poor, session)
    assert store.data == before


async def test_research_rejected_signature_changes_nothing(store, settings, roma):
    signer = HmacSigner(PLAYER, b"k", approve=lambda message: False)
    session = Session.connect(signer, settings, now=NOW)
    seed(store, roma)
    before = dict(store.data)

    with pytest.raises(NotAuthorized):
        await CivilizationLifecycle(store, settings).research_tech(
            "metallurgy", roma, session
        )
    assert store.data == before


async def test_research_requires_connection(store, lifecycle, settings, roma):
    seed(store, roma)
    with pytest.raises(NotConnected):
        await lifecycle.research_tech("metallurgy", roma, Session(settings=settings))


async def test_research_unknown_technology(store, lifecycle, session, roma):
    seed(store, roma)
    with pytest.raises(TechnologyNotFound):
        await lifecycle.research_tech("time_travel", roma, session)


async def test_research_missing_civilization(store, lifecycle, session, roma):
    with pytest.raises(CivilizationNotFound):
        await lifecycle.research_tech("metallurgy", roma, session)


async def test_research_malformed_civilization(store, lifecycle, session, roma):
    store.data[record_key("a")] = b"{"
    with pytest.raises(CivilizationNotFound):
        await lifecycle.research_tech("metallurgy", roma, session)


async def test_research_on_foreign_civilization(store, lifecycle, session, roma):
    foreign = replace(roma, owner=RIVAL)
    seed(store, foreign)
    with pytest.raises(NotAuthorized):
        await lifecycle.research_tech("metallurgy", foreign, session)


async def test_research_already_discovered(store, lifecycle, session, roma):
    seed(store, roma)
    with pytest.raises(AlreadyDiscovered):
        await lifecycle.research_tech("mining", roma, session)


async def test_research_with_stale_copy(store, lifecycle, session, roma):
    seed(store, replace(roma, version=3))
    with pytest.raises(StaleRecord):
        await lifecycle.research_tech("metallurgy", roma, session)


async def test_second_research_from_same_copy_is_stale(store, lifecycle, session, roma):
    seed(store, roma)
    await lifecycle.research_tech("metallurgy", roma, session)

    with pytest.raises(StaleRecord):
        await lifecycle.research_tech("agriculture", roma, session)

    stored = decode_record("a", store.data[record_key("a")])
    assert stored.discovered_technologies == ["mining", "metallurgy"]


async def test_record_changed_during_signing_is_not_overwritten(store, settings, roma):
    seed(store, roma)
    concurrent = replace(roma, name="Roma Invicta", version=1)

    def approve(message):
        # Another session writes while we wait for the signature
        store.data[record_key("a")] = encode_record(concurrent)
        return True

    session = Session.connect(HmacSigner(PLAYER, b"k", approve=approve), settings, now=NOW)

    with pytest.raises(StaleRecord):
        await CivilizationLifecycle(store, settings).research_tech(
            "metallurgy", roma, session
        )
    assert decode_record("a", store.data[record_key("a")]) == concurrent


# ---------------------------------------------------------------------------
# Reveal
# ---------------------------------------------------------------------------


async def test_reveal_both_attributes(lifecycle, session, roma):
    assert await lifecycle.reveal(roma, Attribute.RESEARCH_POINTS, session) == 250
    assert await lifecycle.reveal(roma, Attribute.MILITARY_POWER, session) == 10


async def test_reveal_foreign_civilization_refused(lifecycle, session, roma):
    with pytest.raises(NotAuthorized):
        await lifecycle.reveal(replace(roma, owner=RIVAL), Attribute.MILITARY_POWER, session)


async def test_reveal_unreadable_token(lifecycle, session, roma):
    with pytest.raises(InvalidCivilization):
        await lifecycle.reveal(
            replace(roma, encrypted_tech_points="FHE-???"),
            Attribute.RESEARCH_POINTS,
            session,
        )


async def test_reveal_without_identity_is_not_authorized(lifecycle, settings, roma):
    with pytest.raises(NotAuthorized):
        await lifecycle.reveal(roma, Attribute.RESEARCH_POINTS, Session(settings=settings))
