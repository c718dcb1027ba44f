"""Technology tree loader."""

import json
from pathlib import Path

from secret_tech.errors import TechTreeError
from secret_tech.models.technology import RESEARCH_COST, Technology
from secret_tech.tech_tree import TechTree, default_tree


def parse_technology(entry: dict) -> Technology:
    """
    Parse one technology entry.

    Expected format:
        {
            "id": "metallurgy",
            "name": "Metallurgy",
            "requires": ["mining"],
            "description": "Unlocks advanced metal tools and weapons",
            "cost": 100          (optional)
        }
    """
    if not isinstance(entry, dict):
        raise TechTreeError(f"Technology entry must be an object: {entry!r}")

    tech_id = entry.get("id")
    name = entry.get("name")
    if not isinstance(tech_id, str) or not tech_id:
        raise TechTreeError(f"Technology entry without id: {entry!r}")
    if not isinstance(name, str) or not name:
        raise TechTreeError(f"Technology {tech_id} has no name")

    requires = entry.get("requires", [])
    if not isinstance(requires, list) or not all(isinstance(r, str) for r in requires):
        raise TechTreeError(f"Technology {tech_id}: 'requires' must be a list of ids")

    cost = entry.get("cost", RESEARCH_COST)
    if isinstance(cost, bool) or not isinstance(cost, int) or cost < 0:
        raise TechTreeError(f"Technology {tech_id}: 'cost' must be a non-negative integer")

    return Technology(
        id=tech_id,
        name=name,
        description=str(entry.get("description", "")),
        requires=tuple(requires),
        cost=cost,
    )


def load_tech_tree(json_path: Path | None = None) -> TechTree:
    """Load a technology tree from a JSON list; the built-in tree without a path."""
    if json_path is None:
        return default_tree()

    with open(json_path) as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise TechTreeError(f"{json_path} must contain a JSON list of technologies")

    return TechTree(parse_technology(entry) for entry in data)
