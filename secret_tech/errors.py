"""Error taxonomy.

Every failure a caller can see derives from ``SecretTechError`` and carries a
human-readable ``reason``. The message defaults to the reason; subclasses add
context where there is some.
"""


class SecretTechError(Exception):
    """Base class for all domain errors."""

    reason = "Unknown error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason)


# Store


class StoreError(SecretTechError):
    """An underlying store call failed."""

    reason = "Store request failed"


class StoreUnavailable(StoreError):
    """The store probe reported the store as unavailable."""

    reason = "Store is unavailable"


class StoreTimeout(StoreError):
    """A store call did not complete within the configured timeout."""

    reason = "Store request timed out"


class WriteFailed(StoreError):
    """A store write was rejected; the previously persisted state is unchanged."""

    reason = "Write to store failed"


class StaleRecord(WriteFailed):
    """The stored record changed since it was read."""

    reason = "Civilization was modified by another session"


# Authorization


class NotAuthorized(SecretTechError):
    """No identity, the signature was rejected, or the identity is not the owner."""

    reason = "Not authorized"


class NotConnected(SecretTechError):
    """An operation needs a connected identity and there is none."""

    reason = "Please connect wallet first"


class DecryptionTimeout(SecretTechError):
    """The decryption service did not answer in time."""

    reason = "Decryption timed out"


# Research


class TechnologyNotFound(SecretTechError):
    """The technology id is not part of the tech tree."""

    reason = "Technology not found"

    def __init__(self, tech_id: str):
        self.tech_id = tech_id
        super().__init__(f"{self.reason}: {tech_id}")


class PrerequisiteUnmet(SecretTechError):
    """At least one prerequisite of the technology is not discovered yet."""

    reason = "Missing prerequisites"

    def __init__(self, tech_id: str, missing: list[str]):
        self.tech_id = tech_id
        self.missing = list(missing)
        super().__init__(f"{self.reason} for {tech_id}: {', '.join(self.missing)}")


class InsufficientPoints(SecretTechError):
    """Not enough research points to pay for the technology."""

    reason = "Not enough research points"

    def __init__(self, required: int | float, available: int | float):
        self.required = required
        self.available = available
        super().__init__(f"{self.reason}: need {required}, have {available}")


class AlreadyDiscovered(SecretTechError):
    """The technology is already in the discovered set."""

    reason = "Technology already researched"

    def __init__(self, tech_id: str):
        self.tech_id = tech_id
        super().__init__(f"{self.reason}: {tech_id}")


class CivilizationNotFound(SecretTechError):
    """No (readable) record exists for the civilization id."""

    reason = "Civilization not found"

    def __init__(self, civ_id: str, detail: str | None = None):
        self.civ_id = civ_id
        message = f"{self.reason}: {civ_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvalidCivilization(SecretTechError):
    """Creation input was rejected before anything was written."""

    reason = "Invalid civilization data"


class TechTreeError(SecretTechError):
    """The technology graph is malformed (duplicate ids, unknown ids or a cycle)."""

    reason = "Invalid technology tree"
