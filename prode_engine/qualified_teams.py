# prode_engine/qualified_teams.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from prode_engine.config import (
    EXACT_POSITION_QUALIFIED_POINTS,
    QUALIFIED_PER_GROUP,
    QUALIFIED_TEAM_POINTS,
)
from prode_engine.models import GroupPositionPrediction, TeamStat
from prode_engine.standings import group_positions


@dataclass(frozen=True)
class ScoringConfig:
    qualified_team_points: int = QUALIFIED_TEAM_POINTS
    exact_position_qualified_points: int = EXACT_POSITION_QUALIFIED_POINTS


@dataclass(frozen=True)
class TeamScoringResult:
    team_id: str
    group_id: str
    predicted_position: int
    actual_position: Optional[int]
    predicted_to_qualify: bool
    actually_qualified: bool
    points_awarded: int
    reason: str


def calculate_team_points(
    predicted_position: int,
    predicted_to_qualify: bool,
    actually_qualified: bool,
    actual_position: Optional[int],
    config: ScoringConfig,
) -> Tuple[int, str]:
    """
    Rules:
    - no qualification prediction: 0
    - predicted to qualify, did not qualify: 0
    - qualified but no position known: 0
    - qualified in the exact predicted position: qualified + exact bonus
    - qualified in another position: qualified points only
    """
    if not predicted_to_qualify:
        if actually_qualified:
            return 0, "qualified, but user did not predict qualification"
        return 0, "user did not predict qualification"

    if not actually_qualified:
        if actual_position is None:
            return 0, "group not complete"
        return 0, "predicted qualification, but did not qualify"

    if actual_position is None:
        return 0, "qualified, but no position data"

    if predicted_position == actual_position:
        return (
            config.qualified_team_points + config.exact_position_qualified_points,
            "qualified + exact position",
        )
    return config.qualified_team_points, "qualified, wrong position"


def qualified_positions(
    standings_by_group: Dict[str, Sequence[TeamStat]],
    per_group: int = QUALIFIED_PER_GROUP,
) -> Dict[str, int]:
    """
    team_id -> final position for teams that qualified.

    Only complete groups count; an incomplete group qualifies nobody yet.
    """
    out: Dict[str, int] = {}
    for ordered in standings_by_group.values():
        if not ordered or not all(s.is_complete for s in ordered):
            continue
        out.update({t: pos for t, pos in group_positions(ordered).items() if pos <= per_group})
    return out


def score_user_predictions(
    predictions: Sequence[GroupPositionPrediction],
    qualified: Dict[str, int],
    config: Optional[ScoringConfig] = None,
) -> List[TeamScoringResult]:
    config = config or ScoringConfig()
    out: List[TeamScoringResult] = []
    for p in predictions:
        actual = qualified.get(p.team_id)
        points, reason = calculate_team_points(
            p.predicted_position,
            p.predicted_to_qualify,
            p.team_id in qualified,
            actual,
            config,
        )
        out.append(
            TeamScoringResult(
                team_id=p.team_id,
                group_id=p.group_id,
                predicted_position=p.predicted_position,
                actual_position=actual,
                predicted_to_qualify=p.predicted_to_qualify,
                actually_qualified=p.team_id in qualified,
                points_awarded=points,
                reason=reason,
            )
        )
    return out
