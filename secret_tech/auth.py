"""
Signature-gated attribute reveal.

An encrypted attribute is only handed to the decryption service after the
connected identity has signed the session challenge. The signature itself is
not verified here; checking it is the decryption service's job.
"""

import asyncio
import logging
from typing import Protocol

from secret_tech.cipher import AttributeCipher, default_cipher
from secret_tech.config import Settings
from secret_tech.errors import DecryptionTimeout, NotAuthorized
from secret_tech.session import Challenge, Session
from secret_tech.signers import SignatureRejected

logger = logging.getLogger(__name__)


class DecryptionService(Protocol):
    """Turns a token into a number once the caller has proven who they are."""

    async def decrypt(
        self, token: str, signature: str, challenge: Challenge
    ) -> int | float: ...


class LocalDecryptionService:
    """
    Decrypts in-process with an attribute cipher.

    ``latency`` simulates the round trip to a remote decryption service.
    """

    def __init__(self, cipher: AttributeCipher = default_cipher, latency: float = 0.0):
        self.cipher = cipher
        self.latency = latency

    async def decrypt(
        self, token: str, signature: str, challenge: Challenge
    ) -> int | float:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        return self.cipher.decrypt(token)


class Authorizer:
    """Runs the challenge/signature protocol in front of a decryption service."""

    def __init__(
        self,
        settings: Settings,
        service: DecryptionService | None = None,
    ):
        self.settings = settings
        self.service = service or LocalDecryptionService(
            latency=settings.decrypt_latency
        )

    async def authorize(self, session: Session) -> tuple[str, Challenge]:
        """Have the session's identity sign the challenge; returns (signature, challenge)."""
        if not session.connected:
            raise NotAuthorized("Please connect wallet first")

        challenge = session.current_challenge()
        message = challenge.message()

        logger.debug("Requesting challenge signature from %s", session.address)
        try:
            signature = await asyncio.wait_for(
                session.signer.sign(message), timeout=self.settings.sign_timeout
            )
        except SignatureRejected as e:
            raise NotAuthorized("Signature rejected by user") from e
        except asyncio.TimeoutError as e:
            raise NotAuthorized("Signature request timed out") from e

        return signature, challenge

    async def reveal(self, token: str, session: Session) -> int | float:
        """Decrypt ``token`` for the session's identity, or raise ``NotAuthorized``."""
        signature, challenge = await self.authorize(session)

        try:
            value = await asyncio.wait_for(
                self.service.decrypt(token, signature, challenge),
                timeout=self.settings.decrypt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise DecryptionTimeout(
                f"Decryption did not finish within {self.settings.decrypt_timeout}s"
            ) from e

        logger.debug("Revealed attribute for %s", session.address)
        return value
