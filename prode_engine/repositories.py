# prode_engine/repositories.py
"""
Collaborator contracts for the recalculation engine.

The engine only reads games/results/groups/rounds and requests result
writes; everything else (who is logged in, how standings and scores are
stored) sits behind these protocols. The in-memory implementations live in
store.py and collaborators.py.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from prode_engine.models import Game, GameResult, Group, PlayoffRound, Principal


# -----------------------------
# Auth
# -----------------------------
@runtime_checkable
class AuthContext(Protocol):
    def current_user(self) -> Optional[Principal]: ...


# -----------------------------
# Repositories
# -----------------------------
class GameRepository(Protocol):
    def games_in_group(self, group_id: str, with_results: bool, with_teams: bool) -> List[Game]: ...

    def games_in_tournament(self, tournament_id: str, with_teams: bool) -> List[Game]: ...


class ResultRepository(Protocol):
    def results_by_game_ids(self, game_ids: Sequence[str], include_drafts: bool) -> List[GameResult]: ...

    def create_result(self, result: GameResult) -> GameResult: ...

    def update_result(self, game_id: str, fields: Dict[str, Any]) -> Optional[GameResult]: ...


class GroupRepository(Protocol):
    def group_by_id(self, group_id: str) -> Optional[Group]: ...

    def team_ids_in_group(self, group_id: str) -> List[str]: ...


class PlayoffRepository(Protocol):
    def playoff_round_by_id(self, playoff_round_id: str) -> Optional[PlayoffRound]: ...


# -----------------------------
# Derived-state calculators
# -----------------------------
class GroupPositionCalculator(Protocol):
    def recompute(
        self,
        group_id: str,
        team_ids: Sequence[str],
        games: Sequence[Game],
        tie_break_flag: bool,
    ) -> None: ...


class PlayoffAdvancementCalculator(Protocol):
    def recompute(self, tournament_id: str) -> None: ...


class AggregateScoreCalculator(Protocol):
    def recompute(self, tournament_id: str, recompute_boosts: bool, recompute_history: bool) -> None: ...


class QualifiedTeamsScorer(Protocol):
    def recompute(self, tournament_id: str) -> None: ...
