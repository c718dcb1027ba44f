"""
Configuration.

All tunable parameters live here. Values come from the defaults below, an
optional JSON file and ``SECRET_TECH_*`` environment variables, in that order.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

ENV_PREFIX = "SECRET_TECH_"

# Challenge validity (days), same as the wallet flow it mirrors
DEFAULT_DURATION_DAYS = 30

# Stand-in latency of the local decryption service (seconds)
DEFAULT_DECRYPT_LATENCY = 1.5


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the store, protocol and lifecycle."""

    store_address: str = "0x0000000000000000000000000000000000000000"
    chain_id: int = 0
    duration_days: int = DEFAULT_DURATION_DAYS

    # Timeouts (seconds)
    store_timeout: float = 10.0
    sign_timeout: float = 120.0
    decrypt_timeout: float = 30.0
    decrypt_latency: float = DEFAULT_DECRYPT_LATENCY

    max_concurrent_fetches: int = 8
    index_append_attempts: int = 3
    planner_time_limit: float = 10.0

    log_level: str = "INFO"

    @classmethod
    def from_file(cls, json_path: Path) -> "Settings":
        """Load settings from a JSON object; unknown keys are rejected."""
        with open(json_path) as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {json_path}")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        return cls(**{k: _coerce(k, v) for k, v in data.items()})

    @classmethod
    def from_env(cls, base: "Settings | None" = None) -> "Settings":
        """Overlay ``SECRET_TECH_<FIELD>`` environment variables on ``base``."""
        settings = base or cls()
        overrides = {}
        for f in fields(cls):
            raw = os.environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None and raw != "":
                overrides[f.name] = _coerce(f.name, raw)
        return replace(settings, **overrides)

    @classmethod
    def load(cls, json_path: Path | None = None) -> "Settings":
        """Defaults, then the optional file, then the environment."""
        base = cls.from_file(json_path) if json_path else cls()
        return cls.from_env(base)


_INT_FIELDS = {"chain_id", "duration_days", "max_concurrent_fetches", "index_append_attempts"}
_FLOAT_FIELDS = {
    "store_timeout",
    "sign_timeout",
    "decrypt_timeout",
    "decrypt_latency",
    "planner_time_limit",
}


def _coerce(name: str, value):
    """Convert raw config values (strings from the environment) to field types."""
    if name in _INT_FIELDS:
        return int(value)
    if name in _FLOAT_FIELDS:
        return float(value)
    return str(value)
