"""Data models for civilizations and the directory built from the store."""

from dataclasses import dataclass, field, replace

from secret_tech.models.technology import RESEARCH_COST, Technology, TechStatus

__all__ = [
    "RESEARCH_COST",
    "Civilization",
    "Directory",
    "LoadFailure",
    "LoadReport",
    "ResearchTransition",
    "Technology",
    "TechStatus",
    "same_identity",
]


def same_identity(a: str | None, b: str | None) -> bool:
    """Compare two identity addresses (hex, so case-insensitive)."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


@dataclass
class Civilization:
    """A civilization record as stored under ``civilization_<id>``."""

    id: str
    name: str
    encrypted_tech_points: str
    encrypted_military_power: str
    discovered_technologies: list[str] = field(default_factory=list)
    last_updated: int = 0  # unix seconds
    owner: str = ""
    version: int = 0  # bumped on every write

    def is_owned_by(self, identity: str | None) -> bool:
        """Check if the given identity owns this civilization."""
        return same_identity(self.owner, identity)

    def has_discovered(self, tech_id: str) -> bool:
        """Check if a technology is in the discovered set."""
        return tech_id in self.discovered_technologies


@dataclass(frozen=True)
class ResearchTransition:
    """Outcome of a successful research step, not yet persisted."""

    tech_id: str
    discovered_technologies: tuple[str, ...]
    points_before: int | float
    points_after: int | float
    last_updated: int

    def apply(self, civ: Civilization, encrypted_points: str) -> Civilization:
        """Build the next version of ``civ`` with this transition applied."""
        return replace(
            civ,
            encrypted_tech_points=encrypted_points,
            discovered_technologies=list(self.discovered_technologies),
            last_updated=self.last_updated,
            version=civ.version + 1,
        )


@dataclass(frozen=True)
class LoadFailure:
    """A single id that could not be loaded during a directory sync."""

    key: str
    reason: str


@dataclass
class LoadReport:
    """What happened during a directory sync."""

    store_available: bool = True
    index_size: int = 0
    loaded: int = 0
    failures: list[LoadFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if the store was reachable and every indexed record loaded."""
        return self.store_available and not self.failures


@dataclass
class Directory:
    """All synchronized civilizations, newest first."""

    civilizations: list[Civilization] = field(default_factory=list)
    identity: str | None = None
    report: LoadReport = field(default_factory=LoadReport)
    generation: int = 0

    @property
    def player(self) -> list[Civilization]:
        """Civilizations owned by the current identity."""
        return [c for c in self.civilizations if c.is_owned_by(self.identity)]

    @property
    def foreign(self) -> list[Civilization]:
        """Civilizations owned by anyone else."""
        return [c for c in self.civilizations if not c.is_owned_by(self.identity)]

    def is_player(self, civ: Civilization) -> bool:
        """Check if a civilization belongs to the current identity."""
        return civ.is_owned_by(self.identity)

    def player_civilization(self) -> Civilization | None:
        """Most recently updated civilization of the current identity."""
        player = self.player
        return player[0] if player else None

    def find(self, civ_id: str) -> Civilization | None:
        """Look up a civilization by id."""
        return next((c for c in self.civilizations if c.id == civ_id), None)

    def __len__(self) -> int:
        return len(self.civilizations)
