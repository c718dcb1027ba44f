"""Per-connection session context."""

import logging
import secrets
import time
from dataclasses import dataclass, field

from secret_tech.config import Settings
from secret_tech.models import Directory
from secret_tech.signers import Signer

logger = logging.getLogger(__name__)

SESSION_KEY_HEX_DIGITS = 2000
SECONDS_PER_DAY = 86400


def generate_public_key(hex_digits: int = SESSION_KEY_HEX_DIGITS) -> str:
    """Random session public key, ``0x`` followed by ``hex_digits`` hex digits."""
    return "0x" + secrets.token_hex((hex_digits + 1) // 2)[:hex_digits]


@dataclass(frozen=True)
class Challenge:
    """The parameters signed to authorize attribute reveal."""

    public_key: str
    store_address: str
    chain_id: int
    start_timestamp: int
    duration_days: int

    def message(self) -> str:
        """Canonical challenge text, fields in fixed order."""
        return "\n".join(
            [
                f"publickey:{self.public_key}",
                f"contractAddresses:{self.store_address}",
                f"contractsChainId:{self.chain_id}",
                f"startTimestamp:{self.start_timestamp}",
                f"durationDays:{self.duration_days}",
            ]
        )

    @property
    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * SECONDS_PER_DAY

    def is_expired(self, now: int | None = None) -> bool:
        now = int(time.time()) if now is None else now
        return now >= self.expires_at

    @classmethod
    def issue(cls, settings: Settings, now: int | None = None) -> "Challenge":
        """Fresh challenge with a new session key, starting now."""
        return cls(
            public_key=generate_public_key(),
            store_address=settings.store_address,
            chain_id=settings.chain_id,
            start_timestamp=int(time.time()) if now is None else now,
            duration_days=settings.duration_days,
        )


@dataclass
class Session:
    """
    Everything an operation needs to know about the connected identity.

    Created by ``connect`` when an identity connects and torn down by
    ``disconnect``; core operations receive it explicitly.
    """

    settings: Settings
    signer: Signer | None = None
    challenge: Challenge | None = None
    directory: Directory = field(default_factory=Directory)

    @classmethod
    def connect(
        cls, signer: Signer, settings: Settings, now: int | None = None
    ) -> "Session":
        session = cls(settings=settings, signer=signer)
        session.challenge = Challenge.issue(settings, now)
        session.directory = Directory(identity=signer.address)
        logger.info("Session connected for %s", signer.address)
        return session

    @property
    def address(self) -> str | None:
        return self.signer.address if self.signer else None

    @property
    def connected(self) -> bool:
        return self.signer is not None and bool(self.signer.address)

    def current_challenge(self, now: int | None = None) -> Challenge:
        """The challenge to sign, renewed first if it has expired."""
        if self.challenge is None or self.challenge.is_expired(now):
            self.challenge = Challenge.issue(self.settings, now)
            logger.debug("Issued new challenge for %s", self.address)
        return self.challenge

    def disconnect(self) -> None:
        if self.signer is not None:
            logger.info("Session disconnected for %s", self.signer.address)
        self.signer = None
        self.challenge = None
        self.directory = Directory()
