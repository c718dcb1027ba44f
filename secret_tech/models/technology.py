"""Technology data models."""

from dataclasses import dataclass
from enum import Enum

RESEARCH_COST = 100


@dataclass(frozen=True)
class Technology:
    """Represents a technology that can be researched."""

    id: str  # e.g., "iron_working"
    name: str
    description: str
    requires: tuple[str, ...] = ()
    cost: int = RESEARCH_COST


class TechStatus(Enum):
    """How a technology looks from a civilization's point of view."""

    RESEARCHED = "researched"
    AVAILABLE = "available"
    LOCKED = "locked"
