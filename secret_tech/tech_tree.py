"""
Technology tree and the research state machine.

The tree is a fixed DAG of technologies. A civilization's research state is
its discovered list; the only transition is ``research``, which appends one
technology whose prerequisites are all present and charges its cost. Nothing
here touches the store or decrypts anything.
"""

from collections.abc import Iterable, Iterator
from functools import cache

from secret_tech.errors import (
    AlreadyDiscovered,
    InsufficientPoints,
    NotConnected,
    PrerequisiteUnmet,
    TechnologyNotFound,
    TechTreeError,
)
from secret_tech.models import Civilization, ResearchTransition
from secret_tech.models.technology import Technology, TechStatus

DEFAULT_TECHNOLOGIES: tuple[Technology, ...] = (
    Technology("agriculture", "Agriculture", "Increase food production by 20%"),
    Technology(
        "metallurgy",
        "Metallurgy",
        "Unlocks advanced metal tools and weapons",
        requires=("mining",),
    ),
    Technology("mining", "Mining", "Enables resource extraction from mountains"),
    Technology("writing", "Writing", "Enables diplomacy and record keeping"),
    Technology(
        "mathematics",
        "Mathematics",
        "Improves all research by 15%",
        requires=("writing",),
    ),
    Technology(
        "military_tactics",
        "Military Tactics",
        "Increases combat effectiveness",
        requires=("writing",),
    ),
    Technology(
        "architecture",
        "Architecture",
        "Enables wonder construction",
        requires=("mathematics",),
    ),
    Technology(
        "naval_warfare",
        "Naval Warfare",
        "Unlocks advanced naval units",
        requires=("shipbuilding",),
    ),
    Technology(
        "shipbuilding",
        "Shipbuilding",
        "Enables ocean exploration",
        requires=("woodworking",),
    ),
    Technology("woodworking", "Woodworking", "Basic construction technology"),
    Technology("mysticism", "Mysticism", "Unlocks religious buildings"),
    Technology(
        "currency",
        "Currency",
        "Increases trade income",
        requires=("mathematics",),
    ),
    Technology(
        "engineering",
        "Engineering",
        "Enables siege weapons",
        requires=("architecture",),
    ),
    Technology(
        "philosophy",
        "Philosophy",
        "Increases research speed",
        requires=("writing",),
    ),
    Technology(
        "iron_working",
        "Iron Working",
        "Unlocks iron weapons and armor",
        requires=("metallurgy",),
    ),
)


class TechTree:
    """A validated technology DAG in declaration order."""

    def __init__(self, technologies: Iterable[Technology]):
        self._techs: dict[str, Technology] = {}
        for tech in technologies:
            if tech.id in self._techs:
                raise TechTreeError(f"Duplicate technology id: {tech.id}")
            self._techs[tech.id] = tech

        for tech in self._techs.values():
            unknown = [r for r in tech.requires if r not in self._techs]
            if unknown:
                raise TechTreeError(
                    f"{tech.id} requires unknown technologies: {', '.join(unknown)}"
                )

        self._order = self._topological_sort()

    def __iter__(self) -> Iterator[Technology]:
        return iter(self._techs.values())

    def __len__(self) -> int:
        return len(self._techs)

    def __contains__(self, tech_id: object) -> bool:
        return tech_id in self._techs

    def get(self, tech_id: str) -> Technology:
        """Look up a technology, raising ``TechnologyNotFound``."""
        try:
            return self._techs[tech_id]
        except KeyError:
            raise TechnologyNotFound(tech_id) from None

    def _topological_sort(self) -> list[str]:
        # Kahn's algorithm, ties broken by declaration order
        pending = {t.id: len(set(t.requires)) for t in self._techs.values()}
        dependents: dict[str, list[str]] = {tech_id: [] for tech_id in self._techs}
        for tech in self._techs.values():
            for req in set(tech.requires):
                dependents[req].append(tech.id)

        ready = [tech_id for tech_id, count in pending.items() if count == 0]
        order: list[str] = []
        while ready:
            tech_id = ready.pop(0)
            order.append(tech_id)
            for dependent in dependents[tech_id]:
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    ready.append(dependent)

        if len(order) != len(self._techs):
            cyclic = sorted(set(self._techs) - set(order))
            raise TechTreeError(f"Cycle among technologies: {', '.join(cyclic)}")
        return order

    def topological_order(self) -> list[Technology]:
        """All technologies, every prerequisite before its dependents."""
        return [self._techs[tech_id] for tech_id in self._order]

    def ancestors(self, tech_id: str) -> set[str]:
        """Every technology that must be discovered before ``tech_id``."""
        result: set[str] = set()
        stack = list(self.get(tech_id).requires)
        while stack:
            req = stack.pop()
            if req not in result:
                result.add(req)
                stack.extend(self._techs[req].requires)
        return result

    # Eligibility

    def missing_prerequisites(
        self, tech: Technology | str, discovered: Iterable[str]
    ) -> list[str]:
        """Prerequisites of ``tech`` not in ``discovered``, in declared order."""
        tech = self._resolve(tech)
        known = set(discovered)
        return [req for req in tech.requires if req not in known]

    def eligible(self, tech: Technology | str, discovered: Iterable[str]) -> bool:
        """True if every prerequisite of ``tech`` is in ``discovered``."""
        return not self.missing_prerequisites(tech, discovered)

    def status(self, tech: Technology | str, discovered: Iterable[str]) -> TechStatus:
        tech = self._resolve(tech)
        known = set(discovered)
        if tech.id in known:
            return TechStatus.RESEARCHED
        if self.eligible(tech, known):
            return TechStatus.AVAILABLE
        return TechStatus.LOCKED

    def available(self, discovered: Iterable[str]) -> list[Technology]:
        """Technologies that could be researched next."""
        known = set(discovered)
        return [
            tech
            for tech in self._techs.values()
            if tech.id not in known and self.eligible(tech, known)
        ]

    def progress(self, discovered: Iterable[str]) -> tuple[int, int, int]:
        """(researched, total, rounded percentage) over technologies in this tree."""
        researched = len({t for t in discovered if t in self._techs})
        total = len(self._techs)
        percentage = round(researched / total * 100) if total else 0
        return researched, total, percentage

    def is_consistent(self, discovered: Iterable[str]) -> bool:
        """True if each discovered technology follows all of its prerequisites."""
        seen: set[str] = set()
        for tech_id in discovered:
            tech = self._techs.get(tech_id)
            if tech is None or not self.eligible(tech, seen):
                return False
            seen.add(tech_id)
        return True

    # Transition

    def research(
        self,
        tech_id: str,
        civ: Civilization,
        points: int | float,
        *,
        identity: str | None,
        now: int,
    ) -> ResearchTransition:
        """
        Check every precondition and describe the resulting state.

        ``civ`` is not modified; apply the returned transition to persist it.

        Raises:
            NotConnected: no authorized identity
            TechnologyNotFound: unknown ``tech_id``
            AlreadyDiscovered: ``tech_id`` is already in the discovered list
            PrerequisiteUnmet: a prerequisite is missing
            InsufficientPoints: ``points`` is below the technology's cost
        """
        if not identity:
            raise NotConnected()

        tech = self.get(tech_id)
        if civ.has_discovered(tech.id):
            raise AlreadyDiscovered(tech.id)

        missing = self.missing_prerequisites(tech, civ.discovered_technologies)
        if missing:
            raise PrerequisiteUnmet(tech.id, missing)

        if points < tech.cost:
            raise InsufficientPoints(tech.cost, points)

        return ResearchTransition(
            tech_id=tech.id,
            discovered_technologies=(*civ.discovered_technologies, tech.id),
            points_before=points,
            points_after=points - tech.cost,
            last_updated=now,
        )

    def _resolve(self, tech: Technology | str) -> Technology:
        return self.get(tech) if isinstance(tech, str) else tech


@cache
def default_tree() -> TechTree:
    """The built-in technology tree."""
    return TechTree(DEFAULT_TECHNOLOGIES)


def eligible(tech: Technology | str, discovered: Iterable[str]) -> bool:
    """Eligibility against the built-in tree."""
    return default_tree().eligible(tech, discovered)
