# prode_engine/models.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Literal, Optional, Union

# -----------------------------
# Game / result semantics
# -----------------------------
GameType = Literal["group", "playoff"]
ResultState = Literal["UNSET", "DRAFT", "PUBLISHED"]


# -----------------------------
# Simulated score
# -----------------------------
@dataclass(frozen=True)
class MatchScore:
    home_goals: int
    away_goals: int

    # Only set for drawn playoff games; always different when set
    home_penalties: Optional[int] = None
    away_penalties: Optional[int] = None

    @property
    def has_penalties(self) -> bool:
        return self.home_penalties is not None and self.away_penalties is not None


# -----------------------------
# Persistence-side records
# -----------------------------
@dataclass(frozen=True)
class Game:
    id: str
    tournament_id: str
    game_type: GameType = "group"

    home_team: Optional[str] = None
    away_team: Optional[str] = None

    group_id: Optional[str] = None
    playoff_round_id: Optional[str] = None

    # Bracket rules, e.g. {"group": "A", "position": 1} or {"winner_of": "g49"}
    home_team_rule: Optional[Dict[str, Any]] = None
    away_team_rule: Optional[Dict[str, Any]] = None

    # Attached by repositories when asked for games "with results"
    result: Optional["GameResult"] = None

    @property
    def is_playoff(self) -> bool:
        return self.game_type != "group"


@dataclass(frozen=True)
class GameResult:
    game_id: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    home_penalty_score: Optional[int] = None
    away_penalty_score: Optional[int] = None
    is_draft: bool = False

    @property
    def has_scores(self) -> bool:
        return isinstance(self.home_score, int) and isinstance(self.away_score, int)

    def winner(self, home_team: Optional[str], away_team: Optional[str]) -> Optional[str]:
        """Winning team id, using penalties for level scores; None for a draw or no scores."""
        if not self.has_scores:
            return None
        if self.home_score > self.away_score:
            return home_team
        if self.away_score > self.home_score:
            return away_team
        if self.home_penalty_score is None or self.away_penalty_score is None:
            return None
        if self.home_penalty_score > self.away_penalty_score:
            return home_team
        if self.away_penalty_score > self.home_penalty_score:
            return away_team
        return None

    def loser(self, home_team: Optional[str], away_team: Optional[str]) -> Optional[str]:
        won = self.winner(home_team, away_team)
        if won is None:
            return None
        return away_team if won == home_team else home_team


@dataclass(frozen=True)
class Group:
    id: str
    tournament_id: str
    group_letter: str
    sort_by_games_between_teams: bool = False


@dataclass(frozen=True)
class PlayoffRound:
    id: str
    tournament_id: str
    round_name: str
    order: int = 1
    is_first_stage: bool = False


@dataclass(frozen=True)
class Principal:
    id: str
    is_admin: bool = False


@dataclass(frozen=True)
class GameGuess:
    user_id: str
    game_id: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    home_penalty_winner: bool = False
    away_penalty_winner: bool = False
    boost_multiplier: int = 1


@dataclass(frozen=True)
class GroupPositionPrediction:
    user_id: str
    group_id: str
    team_id: str
    predicted_position: int
    predicted_to_qualify: bool = False


# -----------------------------
# Standings
# -----------------------------
@dataclass(frozen=True)
class TeamStat:
    team_id: str
    points: int = 0
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    goal_difference: int = 0
    conduct_score: int = 0
    is_complete: bool = False


@dataclass(frozen=True)
class RankedTeamStat(TeamStat):
    current_rank: int = 1
    rank_change: Optional[int] = None


# -----------------------------
# Operation scope (exactly one of group / playoff round)
# -----------------------------
@dataclass(frozen=True)
class GroupScope:
    group_id: str


@dataclass(frozen=True)
class PlayoffScope:
    playoff_round_id: str


OperationScope = Union[GroupScope, PlayoffScope]


# -----------------------------
# Bulk operation outcomes
# -----------------------------
@dataclass
class AutoFillResult:
    success: bool
    filled_count: int = 0
    skipped_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "filled_count": self.filled_count,
            "skipped_count": self.skipped_count,
        }


@dataclass
class ClearResult:
    success: bool
    cleared_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "cleared_count": self.cleared_count}


def result_state(result: Optional[GameResult]) -> ResultState:
    """
    Collapse a (possibly missing) result row into one of three states.

    A draft row with no scores is a cleared result and counts as UNSET,
    the same as a game that never had a row.
    """
    if result is None:
        return "UNSET"
    if not result.is_draft:
        return "PUBLISHED"
    if result.has_scores:
        return "DRAFT"
    return "UNSET"


def with_rank(stat: TeamStat, rank: int) -> RankedTeamStat:
    fields_: Dict[str, Any] = asdict(stat)
    fields_.pop("current_rank", None)
    fields_.pop("rank_change", None)
    return RankedTeamStat(current_rank=rank, **fields_)
