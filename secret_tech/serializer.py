"""Encode and decode store payloads (UTF-8 JSON)."""

import json
import math
from dataclasses import dataclass

from secret_tech.models import Civilization

INDEX_KEY = "civilization_keys"
RECORD_KEY_PREFIX = "civilization_"


def record_key(civ_id: str) -> str:
    """Store key of a civilization record."""
    return f"{RECORD_KEY_PREFIX}{civ_id}"


@dataclass(frozen=True)
class ParseFailure:
    """A payload that could not be decoded."""

    key: str
    reason: str


def encode_record(civ: Civilization) -> bytes:
    """Serialize a civilization; the id lives in the key, not the payload."""
    data = {
        "name": civ.name,
        "techPoints": civ.encrypted_tech_points,
        "militaryPower": civ.encrypted_military_power,
        "discoveredTechnologies": list(civ.discovered_technologies),
        "lastUpdated": civ.last_updated,
        "owner": civ.owner,
        "version": civ.version,
    }
    return json.dumps(data).encode("utf-8")


def decode_record(civ_id: str, payload: bytes) -> Civilization | ParseFailure:
    """Deserialize a civilization record, or describe why it cannot be."""
    key = record_key(civ_id)

    data = _load_json(key, payload)
    if isinstance(data, ParseFailure):
        return data
    if not isinstance(data, dict):
        return ParseFailure(key, "record is not a JSON object")

    for field_name in ("name", "techPoints", "militaryPower", "owner"):
        if not isinstance(data.get(field_name), str):
            return ParseFailure(key, f"'{field_name}' missing or not a string")

    last_updated = data.get("lastUpdated")
    if isinstance(last_updated, bool) or not isinstance(last_updated, (int, float)):
        return ParseFailure(key, "'lastUpdated' missing or not a number")
    if isinstance(last_updated, float) and not math.isfinite(last_updated):
        return ParseFailure(key, "'lastUpdated' is not a finite number")

    discovered = data.get("discoveredTechnologies") or []
    if not isinstance(discovered, list) or not all(
        isinstance(t, str) for t in discovered
    ):
        return ParseFailure(key, "'discoveredTechnologies' is not a list of ids")

    version = data.get("version", 0)
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        return ParseFailure(key, "'version' is not a non-negative integer")

    return Civilization(
        id=civ_id,
        name=data["name"],
        encrypted_tech_points=data["techPoints"],
        encrypted_military_power=data["militaryPower"],
        discovered_technologies=list(discovered),
        last_updated=int(last_updated),
        owner=data["owner"],
        version=version,
    )


def encode_index(ids: list[str]) -> bytes:
    """Serialize the ordered id index."""
    return json.dumps(list(ids)).encode("utf-8")


def decode_index(payload: bytes | None) -> list[str] | ParseFailure:
    """Deserialize the id index; empty or missing payloads are an empty index."""
    if not payload or not payload.strip():
        return []

    data = _load_json(INDEX_KEY, payload)
    if isinstance(data, ParseFailure):
        return data
    if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
        return ParseFailure(INDEX_KEY, "index is not a list of ids")
    return data


def _load_json(key: str, payload: bytes):
    if not payload:
        return ParseFailure(key, "empty payload")
    try:
        return json.loads(payload.decode("utf-8"))
    except UnicodeDecodeError:
        return ParseFailure(key, "payload is not valid UTF-8")
    except json.JSONDecodeError as e:
        return ParseFailure(key, f"invalid JSON: {e.msg}")
