"""Tests for the placeholder attribute cipher."""

import base64
import math

import pytest

from secret_tech.cipher import (
    SCHEME_PREFIX,
    InvalidToken,
    PlaceholderCipher,
    decrypt,
    encrypt,
)


@pytest.mark.parametrize("value", [0, 1, 100, 250, -42, 10**18, 2**63 + 1])
def test_integers_round_trip_exactly(value):
    result = decrypt(encrypt(value))
    assert result == value
    assert isinstance(result, int)


@pytest.mark.parametrize("value", [0.1, 12.5, -3.75, 1e-300, 1.7976931348623157e308, math.pi])
def test_finite_floats_round_trip(value):
    assert decrypt(encrypt(value)) == value


def test_whole_float_decrypts_as_equal_integer():
    assert decrypt(encrypt(250.0)) == 250


def test_token_is_tagged_base64_of_text():
    token = encrypt(250)
    assert token.startswith(SCHEME_PREFIX)
    assert base64.b64decode(token[len(SCHEME_PREFIX) :]) == b"250"


def test_matches_tokens_written_by_the_browser_client():
    # btoa("150") == "MTUw"
    assert decrypt("FHE-MTUw") == 150


@pytest.mark.parametrize("token,expected", [("250", 250), ("12.5", 12.5), (" 7 ", 7)])
def test_legacy_untagged_tokens(token, expected):
    assert decrypt(token) == expected


@pytest.mark.parametrize("token", ["", "abc", "FHE-!!!", "FHE-" + base64.b64encode(b"nan").decode(), "inf"])
def test_malformed_tokens_rejected(token):
    with pytest.raises(InvalidToken):
        decrypt(token)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), True, "5", None])
def test_encrypt_rejects_non_numbers(value):
    with pytest.raises(ValueError):
        encrypt(value)


def test_cipher_is_swappable_per_instance():
    class Tagged(PlaceholderCipher):
        prefix = "TEST-"

    cipher = Tagged()
    token = cipher.encrypt(9)
    assert token.startswith("TEST-")
    assert cipher.decrypt(token) == 9
