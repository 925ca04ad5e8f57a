# prode_engine/config.py
from __future__ import annotations

import os
from typing import FrozenSet, Optional

from dotenv import load_dotenv

# Load .env from project root
load_dotenv()


def _get_env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_optional_int(name: str) -> Optional[int]:
    raw = _get_env(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _get_env_set(name: str) -> FrozenSet[str]:
    raw = _get_env(name)
    return frozenset(p.strip() for p in raw.split(",") if p.strip())


# -------------------------
# Score generator
# -------------------------
# Average goals per team per match
DEFAULT_LAMBDA: float = _get_env_float("DEFAULT_LAMBDA", 1.35)

# Shootout draws use their own mean, capped at MAX_PENALTY_SCORE
PENALTY_LAMBDA: float = _get_env_float("PENALTY_LAMBDA", 3.0)
MAX_PENALTY_SCORE: int = _get_env_int("MAX_PENALTY_SCORE", 5)

# Above this lambda e^-lambda underflows, so the sampler switches to a normal approximation
NORMAL_APPROX_THRESHOLD: float = _get_env_float("NORMAL_APPROX_THRESHOLD", 700.0)

# Seed for the mock tournament / HTTP simulate endpoint (unset = nondeterministic)
DEMO_SEED: Optional[int] = _get_env_optional_int("DEMO_SEED")


# -------------------------
# Scoring
# -------------------------
QUALIFIED_PER_GROUP: int = _get_env_int("QUALIFIED_PER_GROUP", 2)
QUALIFIED_TEAM_POINTS: int = _get_env_int("QUALIFIED_TEAM_POINTS", 1)
EXACT_POSITION_QUALIFIED_POINTS: int = _get_env_int("EXACT_POSITION_QUALIFIED_POINTS", 1)


# -------------------------
# HTTP / runtime
# -------------------------
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO").upper()

# Principals listed here are admins for the HTTP layer regardless of store flags
ADMIN_USER_IDS: FrozenSet[str] = _get_env_set("ADMIN_USER_IDS")


def validate_config() -> None:
    if DEFAULT_LAMBDA <= 0:
        raise RuntimeError("DEFAULT_LAMBDA must be positive")

    if PENALTY_LAMBDA <= 0:
        raise RuntimeError("PENALTY_LAMBDA must be positive")

    # A shootout needs room for a strict winner
    if MAX_PENALTY_SCORE < 1:
        raise RuntimeError("MAX_PENALTY_SCORE must be at least 1")

    if NORMAL_APPROX_THRESHOLD <= 0:
        raise RuntimeError("NORMAL_APPROX_THRESHOLD must be positive")

    if QUALIFIED_PER_GROUP < 1:
        raise RuntimeError("QUALIFIED_PER_GROUP must be at least 1")

    if LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"LOG_LEVEL must be a standard logging level, got {LOG_LEVEL!r}")
