# prode_engine/collaborators.py
from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Sequence

from prode_engine.config import DEFAULT_LAMBDA, QUALIFIED_PER_GROUP
from prode_engine.bulk_results import BulkResultService
from prode_engine.game_scoring import total_scores_by_user
from prode_engine.models import Game, TeamStat
from prode_engine.pipeline import RecalculationPipeline
from prode_engine.qualified_teams import ScoringConfig, qualified_positions, score_user_predictions
from prode_engine.repositories import AuthContext
from prode_engine.standings import calculate_group_position
from prode_engine.store import InMemoryStore

_log = logging.getLogger("prode_engine.collaborators")


class StoreGroupPositionCalculator:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def recompute(
        self,
        group_id: str,
        team_ids: Sequence[str],
        games: Sequence[Game],
        tie_break_flag: bool,
    ) -> None:
        self.store.standings[group_id] = calculate_group_position(team_ids, games, tie_break_flag)


class StorePlayoffAdvancement:
    """
    Fills playoff teams from bracket rules, round by round.

    - {"group": "A", "position": 1}: that finisher, once group A is complete
    - {"winner_of": game_id} / {"loser_of": game_id}: from a published result

    Anything not yet decided is reset to None so stale teams never linger.
    Third-place combination tables are not modelled; group rules are literal.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def recompute(self, tournament_id: str) -> None:
        finishers = self._group_finishers(tournament_id)
        for rnd in self.store.rounds_in_tournament(tournament_id):
            for game in self.store.games_in_tournament(tournament_id, True):
                if game.playoff_round_id != rnd.id:
                    continue
                home = self._resolve(game.home_team_rule, finishers)
                away = self._resolve(game.away_team_rule, finishers)
                if (home, away) != (game.home_team, game.away_team):
                    _log.debug(f"Playoff game {game.id}: {home} vs {away}")
                    self.store.assign_teams(game.id, home, away)

    def _group_finishers(self, tournament_id: str) -> Dict[str, List[TeamStat]]:
        out: Dict[str, List[TeamStat]] = {}
        for group in self.store.groups_in_tournament(tournament_id):
            ordered = self.store.standings.get(group.id) or []
            if ordered and all(s.is_complete for s in ordered):
                out[group.group_letter.upper()] = ordered
        return out

    def _resolve(self, rule: Optional[Dict[str, Any]], finishers: Dict[str, List[TeamStat]]) -> Optional[str]:
        if not rule:
            return None

        if "group" in rule:
            ordered = finishers.get(str(rule["group"]).upper())
            pos = int(rule.get("position", 0))
            if ordered is None or not 1 <= pos <= len(ordered):
                return None
            return ordered[pos - 1].team_id

        source_id = rule.get("winner_of") or rule.get("loser_of")
        source = self.store.games.get(source_id) if source_id else None
        result = self.store.results.get(source_id) if source_id else None
        if source is None or result is None or result.is_draft:
            return None
        if "winner_of" in rule:
            return result.winner(source.home_team, source.away_team)
        return result.loser(source.home_team, source.away_team)


class StoreAggregateScores:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def recompute(self, tournament_id: str, recompute_boosts: bool, recompute_history: bool) -> None:
        games = self.store.games_in_tournament(tournament_id, False)
        results = {g.id: g.result for g in games if g.result is not None}
        guesses = self.store.guesses_for_games([g.id for g in games])

        self.store.snapshot_totals(tournament_id)
        base = total_scores_by_user(games, results, guesses)
        for user_id, points in base.items():
            self.store.game_scores[(tournament_id, user_id)] = points

        if recompute_boosts:
            boosted = total_scores_by_user(games, results, guesses, apply_boosts=True)
            for user_id, points in boosted.items():
                self.store.boosted_scores[(tournament_id, user_id)] = points

        if recompute_history:
            for user_id, points in base.items():
                self.store.score_history.setdefault((tournament_id, user_id), []).append(points)


class StoreQualifiedTeamsScorer:
    def __init__(
        self,
        store: InMemoryStore,
        config: Optional[ScoringConfig] = None,
        per_group: int = QUALIFIED_PER_GROUP,
    ) -> None:
        self.store = store
        self.config = config or ScoringConfig()
        self.per_group = per_group

    def recompute(self, tournament_id: str) -> None:
        groups = self.store.groups_in_tournament(tournament_id)
        standings = {g.id: self.store.standings.get(g.id, []) for g in groups}
        qualified = qualified_positions(standings, self.per_group)

        by_user: Dict[str, list] = {}
        for p in self.store.predictions_for_groups([g.id for g in groups]):
            by_user.setdefault(p.user_id, []).append(p)

        for user_id, predictions in by_user.items():
            scored = score_user_predictions(predictions, qualified, self.config)
            self.store.qualified_scores[(tournament_id, user_id)] = sum(s.points_awarded for s in scored)


def build_pipeline(store: InMemoryStore) -> RecalculationPipeline:
    return RecalculationPipeline(
        games=store,
        groups=store,
        group_positions=StoreGroupPositionCalculator(store),
        playoff_advancement=StorePlayoffAdvancement(store),
        aggregate_scores=StoreAggregateScores(store),
        qualified_teams=StoreQualifiedTeamsScorer(store),
    )


def build_service(
    store: InMemoryStore,
    auth: AuthContext,
    *,
    lam: float = DEFAULT_LAMBDA,
    rng: Optional[random.Random] = None,
) -> BulkResultService:
    return BulkResultService(
        auth=auth,
        games=store,
        results=store,
        groups=store,
        playoffs=store,
        pipeline=build_pipeline(store),
        lam=lam,
        rng=rng,
    )
