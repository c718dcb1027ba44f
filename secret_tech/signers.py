"""Signing providers for connected identities."""

import asyncio
import hashlib
import hmac
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class SignatureRejected(Exception):
    """The identity's owner declined to sign."""


class Signer(Protocol):
    """Signs challenge messages on behalf of one identity."""

    address: str

    async def sign(self, message: str) -> str: ...


class HmacSigner:
    """
    Local development signer.

    Produces ``0x`` + HMAC-SHA256(secret, message). ``approve`` is asked before
    every signature and can decline, which raises ``SignatureRejected``; it
    stands in for the wallet's confirmation prompt.
    """

    def __init__(
        self,
        address: str,
        secret: bytes,
        approve: Callable[[str], bool] | None = None,
    ):
        self.address = address
        self._secret = secret
        self._approve = approve

    async def sign(self, message: str) -> str:
        if self._approve is not None:
            # Prompts may block on user input
            approved = await asyncio.to_thread(self._approve, message)
            if not approved:
                logger.info("Signature request declined for %s", self.address)
                raise SignatureRejected("User rejected the signature request")

        digest = hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256)
        return "0x" + digest.hexdigest()

    def verify(self, message: str, signature: str) -> bool:
        """Check a signature produced by this signer."""
        expected = "0x" + hmac.new(
            self._secret, message.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature)
