# prode_engine/bulk_results.py
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from prode_engine.config import DEFAULT_LAMBDA
from prode_engine.models import (
    AutoFillResult,
    ClearResult,
    Game,
    GameResult,
    GroupScope,
    OperationScope,
    PlayoffScope,
    result_state,
)
from prode_engine.pipeline import RecalculationPipeline
from prode_engine.repositories import (
    AuthContext,
    GameRepository,
    GroupRepository,
    PlayoffRepository,
    ResultRepository,
)
from prode_engine.score_sampler import InvalidLambdaError, generate_match_score

_log = logging.getLogger("prode_engine.bulk_results")

# Error tags returned to the caller (translated by the UI)
ERR_UNAUTHORIZED = "scoreGenerator.unauthorized"
ERR_REQUIRE_SCOPE = "scoreGenerator.requireGroupOrPlayoff"
ERR_GROUP_NOT_FOUND = "scoreGenerator.groupNotFound"
ERR_PLAYOFF_ROUND_NOT_FOUND = "scoreGenerator.playoffRoundNotFound"


class ScopeError(ValueError):
    """Raised when a bulk operation does not get exactly one of group / playoff round."""
    pass


class ScopeNotFoundError(LookupError):
    """Raised when a scope id does not resolve to a group or playoff round."""

    def __init__(self, tag: str, message: str) -> None:
        super().__init__(message)
        self.tag = tag


def parse_scope(group_id: Optional[str] = None, playoff_round_id: Optional[str] = None) -> OperationScope:
    if bool(group_id) == bool(playoff_round_id):
        raise ScopeError("Exactly one of group_id or playoff_round_id is required")
    if group_id:
        return GroupScope(group_id)
    return PlayoffScope(playoff_round_id)


@dataclass(frozen=True)
class ResolvedScope:
    tournament_id: str
    games: List[Game]

    # Only set for group scopes; drives the standings stage
    group_id: Optional[str] = None


class BulkResultService:
    """
    Admin bulk actions over one group or one playoff round.

    - auto_fill: simulate and publish scores for games that are not published yet
    - clear: reset existing results to empty drafts

    Both run the recalculation pipeline once per batch, and only if something
    changed. Collaborator failures come back as AutoFillResult/ClearResult
    with success=False; nothing escapes except sampler contract violations.
    """

    def __init__(
        self,
        auth: AuthContext,
        games: GameRepository,
        results: ResultRepository,
        groups: GroupRepository,
        playoffs: PlayoffRepository,
        pipeline: RecalculationPipeline,
        *,
        lam: float = DEFAULT_LAMBDA,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.auth = auth
        self.games = games
        self.results = results
        self.groups = groups
        self.playoffs = playoffs
        self.pipeline = pipeline
        self.lam = lam
        self.rng = rng or random.Random()

    # -----------------------
    # Entry points (two optional ids, as the admin UI sends them)
    # -----------------------
    def auto_fill_game_scores(
        self,
        group_id: Optional[str] = None,
        playoff_round_id: Optional[str] = None,
    ) -> AutoFillResult:
        error = self._check_admin()
        if error:
            return AutoFillResult(success=False, error=error)
        try:
            scope = parse_scope(group_id, playoff_round_id)
        except ScopeError:
            return AutoFillResult(success=False, error=ERR_REQUIRE_SCOPE)
        return self._auto_fill(scope)

    def clear_game_scores(
        self,
        group_id: Optional[str] = None,
        playoff_round_id: Optional[str] = None,
    ) -> ClearResult:
        error = self._check_admin()
        if error:
            return ClearResult(success=False, error=error)
        try:
            scope = parse_scope(group_id, playoff_round_id)
        except ScopeError:
            return ClearResult(success=False, error=ERR_REQUIRE_SCOPE)
        return self._clear_scope(scope)

    # -----------------------
    # Scope-typed operations
    # -----------------------
    def auto_fill(self, scope: OperationScope) -> AutoFillResult:
        error = self._check_admin()
        if error:
            return AutoFillResult(success=False, error=error)
        return self._auto_fill(scope)

    def clear(self, scope: OperationScope) -> ClearResult:
        error = self._check_admin()
        if error:
            return ClearResult(success=False, error=error)
        return self._clear_scope(scope)

    def _auto_fill(self, scope: OperationScope) -> AutoFillResult:
        try:
            resolved = self._resolve(scope)
        except ScopeNotFoundError as e:
            return AutoFillResult(success=False, error=e.tag)
        except Exception as e:
            _log.exception(f"Auto-fill failed resolving {scope}")
            return AutoFillResult(success=False, error=str(e))

        try:
            filled, skipped = self._fill(resolved)
        except InvalidLambdaError:
            raise
        except Exception as e:
            _log.exception(f"Auto-fill failed for {scope}")
            return AutoFillResult(success=False, error=str(e))

        _log.info(f"Auto-filled {filled} game(s), skipped {skipped} published, scope={scope}")
        return AutoFillResult(success=True, filled_count=filled, skipped_count=skipped)

    def _clear_scope(self, scope: OperationScope) -> ClearResult:
        try:
            resolved = self._resolve(scope)
        except ScopeNotFoundError as e:
            return ClearResult(success=False, error=e.tag)
        except Exception as e:
            _log.exception(f"Clear failed resolving {scope}")
            return ClearResult(success=False, error=str(e))

        try:
            cleared = self._clear(resolved)
        except Exception as e:
            _log.exception(f"Clear failed for {scope}")
            return ClearResult(success=False, error=str(e))

        _log.info(f"Cleared {cleared} result(s), scope={scope}")
        return ClearResult(success=True, cleared_count=cleared)

    # -----------------------
    # Helpers
    # -----------------------
    def _check_admin(self) -> Optional[str]:
        user = self.auth.current_user()
        if user is None or not user.is_admin:
            return ERR_UNAUTHORIZED
        return None

    def _resolve(self, scope: OperationScope) -> ResolvedScope:
        if isinstance(scope, GroupScope):
            group = self.groups.group_by_id(scope.group_id)
            if group is None:
                raise ScopeNotFoundError(ERR_GROUP_NOT_FOUND, f"Group not found: {scope.group_id}")
            games = self.games.games_in_group(scope.group_id, True, True)
            return ResolvedScope(group.tournament_id, list(games), group_id=group.id)

        if isinstance(scope, PlayoffScope):
            rnd = self.playoffs.playoff_round_by_id(scope.playoff_round_id)
            if rnd is None:
                raise ScopeNotFoundError(
                    ERR_PLAYOFF_ROUND_NOT_FOUND, f"Playoff round not found: {scope.playoff_round_id}"
                )
            all_games = self.games.games_in_tournament(rnd.tournament_id, True)
            games = [g for g in all_games if g.playoff_round_id == rnd.id]
            return ResolvedScope(rnd.tournament_id, games)

        raise ScopeError(f"Unsupported scope: {scope!r}")

    def _fill(self, resolved: ResolvedScope) -> Tuple[int, int]:
        game_ids = [g.id for g in resolved.games]
        existing: Dict[str, GameResult] = {
            r.game_id: r for r in self.results.results_by_game_ids(game_ids, True)
        }

        eligible = [g for g in resolved.games if result_state(existing.get(g.id)) != "PUBLISHED"]
        skipped = len(resolved.games) - len(eligible)
        if not eligible:
            return 0, skipped

        for game in eligible:
            score = generate_match_score(self.lam, game.is_playoff, self.rng)
            fields: Dict[str, Any] = {
                "home_score": score.home_goals,
                "away_score": score.away_goals,
                "home_penalty_score": score.home_penalties,
                "away_penalty_score": score.away_penalties,
                "is_draft": False,
            }

            if game.id in existing:
                self.results.update_result(game.id, fields)
            else:
                self.results.create_result(GameResult(game_id=game.id, **fields))

        self.pipeline.run(resolved.tournament_id, resolved.group_id)
        return len(eligible), skipped

    def _clear(self, resolved: ResolvedScope) -> int:
        with_results = [g for g in resolved.games if result_state(g.result) != "UNSET"]
        if not with_results:
            return 0

        for game in with_results:
            self.results.update_result(
                game.id,
                {
                    "home_score": None,
                    "away_score": None,
                    "home_penalty_score": None,
                    "away_penalty_score": None,
                    "is_draft": True,
                },
            )

        self.pipeline.run(resolved.tournament_id, resolved.group_id)
        return len(with_results)
