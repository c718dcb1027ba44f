"""Tests for store payload encoding."""

import json

import pytest

from secret_tech.serializer import (
    INDEX_KEY,
    ParseFailure,
    decode_index,
    decode_record,
    encode_index,
    encode_record,
    record_key,
)


def test_record_key():
    assert record_key("1700000000000-ab12") == "civilization_1700000000000-ab12"


def test_record_uses_client_field_names(roma):
    data = json.loads(encode_record(roma).decode("utf-8"))
    assert data == {
        "name": "Roma",
        "techPoints": roma.encrypted_tech_points,
        "militaryPower": roma.encrypted_military_power,
        "discoveredTechnologies": ["mining"],
        "lastUpdated": roma.last_updated,
        "owner": roma.owner,
        "version": 0,
    }


def test_record_decodes_back(roma):
    assert decode_record("a", encode_record(roma)) == roma


def test_record_written_before_versioning_decodes():
    payload = json.dumps(
        {
            "name": "Carthage",
            "techPoints": "FHE-MTAw",
            "militaryPower": "5",
            "lastUpdated": 1690000000,
            "owner": "0xabc",
        }
    ).encode()

    civ = decode_record("c", payload)

    assert civ.id == "c"
    assert civ.discovered_technologies == []
    assert civ.version == 0


@pytest.mark.parametrize(
    "payload,reason",
    [
        (b"", "empty"),
        (b"{not json", "invalid JSON"),
        (b"\xff\xfe", "UTF-8"),
        (b"[1, 2]", "not a JSON object"),
        (b'{"name": 5}', "'name'"),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o"}',
            "'lastUpdated'",
        ),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o",'
            b' "lastUpdated": NaN}',
            "finite",
        ),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o",'
            b' "lastUpdated": -Infinity}',
            "finite",
        ),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o",'
            b' "lastUpdated": 1e999}',
            "finite",
        ),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o",'
            b' "lastUpdated": 1, "discoveredTechnologies": "mining"}',
            "discoveredTechnologies",
        ),
        (
            b'{"name": "X", "techPoints": "1", "militaryPower": "1", "owner": "o",'
            b' "lastUpdated": 1, "version": -1}',
            "'version'",
        ),
    ],
)
def test_malformed_record_is_a_failure_not_an_exception(payload, reason):
    result = decode_record("bad", payload)
    assert isinstance(result, ParseFailure)
    assert result.key == "civilization_bad"
    assert reason in result.reason


def test_index_round_trip_keeps_order():
    ids = ["b", "a", "c"]
    assert decode_index(encode_index(ids)) == ids


@pytest.mark.parametrize("payload", [b"", None, b"   ", b"[]"])
def test_empty_or_missing_index_is_empty_list(payload):
    assert decode_index(payload) == []


@pytest.mark.parametrize("payload", [b"{", b'{"a": 1}', b'["a", 2]'])
def test_malformed_index(payload):
    result = decode_index(payload)
    assert isinstance(result, ParseFailure)
    assert result.key == INDEX_KEY
