# prode_engine/pipeline.py
from __future__ import annotations

import logging
import time
from typing import Optional

from prode_engine.repositories import (
    AggregateScoreCalculator,
    GameRepository,
    GroupPositionCalculator,
    GroupRepository,
    PlayoffAdvancementCalculator,
    QualifiedTeamsScorer,
)

_log = logging.getLogger("prode_engine.pipeline")


class RecalculationPipeline:
    """
    Re-derive everything that depends on match results, in order:

      1. group standings (only when a group id is given)
      2. playoff bracket advancement (whole tournament, always)
      3. per-user game scores (base scores: no boosts, no history)
      4. qualified-teams bonus scores

    Each stage reads what the previous one wrote, so they run one after the
    other. The first failure stops the run and is re-raised; stages that
    already finished are not rolled back. Every stage is a full recompute,
    so running the whole pipeline again is always safe.
    """

    def __init__(
        self,
        games: GameRepository,
        groups: GroupRepository,
        group_positions: GroupPositionCalculator,
        playoff_advancement: PlayoffAdvancementCalculator,
        aggregate_scores: AggregateScoreCalculator,
        qualified_teams: QualifiedTeamsScorer,
    ) -> None:
        self.games = games
        self.groups = groups
        self.group_positions = group_positions
        self.playoff_advancement = playoff_advancement
        self.aggregate_scores = aggregate_scores
        self.qualified_teams = qualified_teams

    def run(self, tournament_id: str, group_id: Optional[str] = None) -> None:
        started = time.perf_counter()

        if group_id is not None:
            self._stage("group_standings", self._recompute_group, group_id)
        self._stage("playoff_advancement", self.playoff_advancement.recompute, tournament_id)
        self._stage("game_scores", self.aggregate_scores.recompute, tournament_id, False, False)
        self._stage("qualified_teams", self.qualified_teams.recompute, tournament_id)

        elapsed_ms = (time.perf_counter() - started) * 1000
        _log.info(f"Recalculated tournament={tournament_id} group={group_id} in {elapsed_ms:.1f}ms")

    def _stage(self, name: str, fn, *args) -> None:
        _log.debug(f"Stage {name} starting")
        try:
            fn(*args)
        except Exception:
            _log.error(f"Stage {name} failed; later stages skipped")
            raise
        _log.debug(f"Stage {name} done")

    def _recompute_group(self, group_id: str) -> None:
        group = self.groups.group_by_id(group_id)
        if group is None:
            _log.warning(f"Group {group_id} not found; standings not recalculated")
            return

        team_ids = self.groups.team_ids_in_group(group_id)
        games = self.games.games_in_group(group_id, True, False)
        self.group_positions.recompute(group_id, team_ids, games, group.sort_by_games_between_teams)
