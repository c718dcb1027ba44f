"""CP-SAT research planner using OR-Tools."""

import logging
from dataclasses import dataclass, field

from ortools.sat.python import cp_model

from secret_tech.tech_tree import TechTree

logger = logging.getLogger(__name__)

# Reaching one more target always outweighs researching fewer technologies
TARGET_WEIGHT = 1000


@dataclass(frozen=True)
class ResearchStep:
    """One technology to research, in order."""

    tech_id: str
    points_before: int | float
    points_after: int | float


@dataclass
class ResearchPlan:
    """Ordered research steps toward a set of target technologies."""

    steps: list[ResearchStep] = field(default_factory=list)
    reached_targets: list[str] = field(default_factory=list)
    unreached_targets: list[str] = field(default_factory=list)
    total_cost: int = 0

    @property
    def complete(self) -> bool:
        return not self.unreached_targets


class ResearchPlanner:
    """
    Chooses which technologies to research to reach as many targets as the
    point budget allows.

    Key modeling decisions:
    - One boolean per undiscovered technology
    - A technology implies each of its undiscovered prerequisites
    - Total cost stays within the available points
    - Maximize targets reached, then minimize technologies researched
    - Steps come out in topological order of the tree
    """

    def __init__(
        self,
        tree: TechTree,
        discovered: list[str],
        points: int | float,
        targets: list[str],
        time_limit: float = 10.0,
    ):
        self.tree = tree
        self.discovered = set(discovered)
        self.points = points
        self.targets = list(dict.fromkeys(targets))
        self.time_limit = time_limit

        # Raises TechnologyNotFound early for unknown targets
        for target in self.targets:
            self.tree.get(target)

    def solve(self) -> ResearchPlan:
        pending_targets = [t for t in self.targets if t not in self.discovered]
        already = [t for t in self.targets if t in self.discovered]
        if not pending_targets:
            return ResearchPlan(reached_targets=already)

        model = cp_model.CpModel()

        # Only technologies on the way to some target matter
        relevant: set[str] = set()
        for target in pending_targets:
            relevant.add(target)
            relevant.update(self.tree.ancestors(target))
        relevant -= self.discovered

        research_vars = {
            tech_id: model.NewBoolVar(f"research_{tech_id}") for tech_id in relevant
        }

        # Constraint 1: prerequisites
        for tech_id, var in research_vars.items():
            for req in self.tree.get(tech_id).requires:
                if req in research_vars:
                    model.AddImplication(var, research_vars[req])

        # Constraint 2: budget
        budget = int(self.points) if self.points > 0 else 0
        model.Add(
            sum(self.tree.get(t).cost * v for t, v in research_vars.items()) <= budget
        )

        model.Maximize(
            TARGET_WEIGHT * sum(research_vars[t] for t in pending_targets)
            - sum(research_vars.values())
        )

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.time_limit
        status = solver.Solve(model)

        if status not in [cp_model.OPTIMAL, cp_model.FEASIBLE]:
            logger.warning("Research planner found no solution (status %s)", status)
            return ResearchPlan(reached_targets=already, unreached_targets=pending_targets)

        chosen = {t for t, v in research_vars.items() if solver.Value(v)}

        # Extract steps
        steps = []
        points = self.points
        for tech in self.tree.topological_order():
            if tech.id not in chosen:
                continue
            steps.append(
                ResearchStep(
                    tech_id=tech.id,
                    points_before=points,
                    points_after=points - tech.cost,
                )
            )
            points -= tech.cost

        return ResearchPlan(
            steps=steps,
            reached_targets=already + [t for t in pending_targets if t in chosen],
            unreached_targets=[t for t in pending_targets if t not in chosen],
            total_cost=sum(self.tree.get(t).cost for t in chosen),
        )
