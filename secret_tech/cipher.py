"""
Attribute cipher.

WARNING: ``PlaceholderCipher`` provides NO confidentiality. A token is the
base64 of the number's text, tagged ``FHE-``; anyone holding a token can read
the value. It exists so callers can be written against the
``encrypt``/``decrypt`` contract now and a real homomorphic or commit/reveal
scheme can be swapped in later without touching them.

Contract: ``decrypt(encrypt(x)) == x`` for every int and every finite float
(floats are written with Python's shortest round-trip ``repr``).
"""

import base64
import binascii
import math
import re
from typing import Protocol

SCHEME_PREFIX = "FHE-"

_INT_RE = re.compile(r"^[+-]?\d+$")


class InvalidToken(ValueError):
    """The token is neither a tagged placeholder token nor numeric text."""


class AttributeCipher(Protocol):
    """Interface every attribute cipher implements."""

    def encrypt(self, value: int | float) -> str: ...

    def decrypt(self, token: str) -> int | float: ...


class PlaceholderCipher:
    """Reversible, keyless stand-in for a real attribute cipher."""

    prefix = SCHEME_PREFIX

    def encrypt(self, value: int | float) -> str:
        """Encode a number as an opaque token."""
        text = _number_to_text(value)
        encoded = base64.b64encode(text.encode("ascii")).decode("ascii")
        return f"{self.prefix}{encoded}"

    def decrypt(self, token: str) -> int | float:
        """Decode a token; untagged numeric text is accepted as a legacy token."""
        if not isinstance(token, str):
            raise InvalidToken(f"Token must be a string, got {type(token).__name__}")

        if token.startswith(self.prefix):
            try:
                text = base64.b64decode(token[len(self.prefix) :], validate=True).decode(
                    "ascii"
                )
            except (binascii.Error, UnicodeDecodeError) as e:
                raise InvalidToken(f"Malformed token payload: {token!r}") from e
        else:
            text = token

        return _text_to_number(text.strip())


def _number_to_text(value: int | float) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Only numbers can be encrypted, got {type(value).__name__}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Cannot encrypt non-finite value: {value}")
        if value.is_integer() and abs(value) < 2**53:
            # Whole floats are written the way integers are
            return str(int(value))
        return repr(value)
    return str(value)


def _text_to_number(text: str) -> int | float:
    if _INT_RE.match(text):
        return int(text)
    try:
        value = float(text)
    except ValueError as e:
        raise InvalidToken(f"Token is not numeric: {text!r}") from e
    if not math.isfinite(value):
        raise InvalidToken(f"Token is not a finite number: {text!r}")
    return value


default_cipher = PlaceholderCipher()


def encrypt(value: int | float) -> str:
    """Encrypt with the default cipher."""
    return default_cipher.encrypt(value)


def decrypt(token: str) -> int | float:
    """Decrypt with the default cipher."""
    return default_cipher.decrypt(token)
