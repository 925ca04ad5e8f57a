# prode_engine/score_sampler.py
from __future__ import annotations

import math
import random
from typing import Optional

from prode_engine.config import (
    DEFAULT_LAMBDA,
    MAX_PENALTY_SCORE,
    NORMAL_APPROX_THRESHOLD,
    PENALTY_LAMBDA,
)
from prode_engine.models import MatchScore


class InvalidLambdaError(ValueError):
    """Raised when a Poisson mean is not a finite number greater than 0."""
    pass


def _check_lambda(lam: float) -> None:
    if not (lam > 0 and math.isfinite(lam)):
        raise InvalidLambdaError(f"Lambda must be a finite number greater than 0 (got {lam})")


def _normal_approx(lam: float, rng: random.Random) -> int:
    """Box-Muller draw from N(lam, sqrt(lam)), rounded and clamped at 0."""
    # 1 - u keeps u1 in (0, 1] so log() never sees 0
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return max(0, int(round(lam + z * math.sqrt(lam))))


def generate_poisson_score(lam: float, rng: Optional[random.Random] = None) -> int:
    """
    Draw a goal count from Poisson(lam).

    - lam <= NORMAL_APPROX_THRESHOLD: Knuth's multiplicative algorithm (exact).
    - lam above the threshold: e^-lam underflows to 0.0, so a normal
      approximation is used instead.

    Example:
      generate_poisson_score(1.35) -> 0, 1, 2, 3 ... with Poisson(1.35) weights
    """
    _check_lambda(lam)
    rng = rng or random.Random()

    if lam > NORMAL_APPROX_THRESHOLD:
        return _normal_approx(lam, rng)

    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= rng.random()
        if p <= limit:
            return k - 1


def _penalty_shootout(rng: random.Random) -> tuple[int, int]:
    home = min(MAX_PENALTY_SCORE, generate_poisson_score(PENALTY_LAMBDA, rng))
    away = min(MAX_PENALTY_SCORE, generate_poisson_score(PENALTY_LAMBDA, rng))

    if home != away:
        return home, away

    # Level shootout: bump a random side. At the cap the other side drops instead.
    if rng.random() < 0.5:
        if home < MAX_PENALTY_SCORE:
            home += 1
        else:
            away -= 1
    else:
        if away < MAX_PENALTY_SCORE:
            away += 1
        else:
            home -= 1
    return home, away


def generate_match_score(
    lam: float = DEFAULT_LAMBDA,
    is_playoff: bool = False,
    rng: Optional[random.Random] = None,
) -> MatchScore:
    """
    Simulate a full-time score with two independent Poisson draws.

    Rules:
    - Drawn playoff game: a penalty shootout is added (each side in
      [0, MAX_PENALTY_SCORE], never level).
    - Drawn group game: the draw stands, no penalties.
    - Decided game: no penalties, whatever the game type.
    """
    _check_lambda(lam)
    rng = rng or random.Random()

    home_goals = generate_poisson_score(lam, rng)
    away_goals = generate_poisson_score(lam, rng)

    if home_goals == away_goals and is_playoff:
        home_pen, away_pen = _penalty_shootout(rng)
        return MatchScore(home_goals, away_goals, home_pen, away_pen)

    return MatchScore(home_goals, away_goals)
