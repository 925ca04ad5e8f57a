# prode_engine/standings.py
from __future__ import annotations

from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from prode_engine.models import Game, RankedTeamStat, TeamStat
from prode_engine.rank_calculator import calculate_ranks

WIN_POINTS = 3
DRAW_POINTS = 1


def _scored_games(games: Sequence[Game]) -> List[Game]:
    # Draft scores are unpublished and never count toward the table
    return [g for g in games if g.result is not None and g.result.has_scores and not g.result.is_draft]


def apply_game(stat: TeamStat, goals_for: int, goals_against: int) -> TeamStat:
    """
    Fold one game into a team's stats (returns a new TeamStat).

    Rules:
    - win: 3 points
    - draw: 1 point each
    - loss: 0
    """
    won = goals_for > goals_against
    drawn = goals_for == goals_against
    return replace(
        stat,
        games_played=stat.games_played + 1,
        points=stat.points + (WIN_POINTS if won else DRAW_POINTS if drawn else 0),
        wins=stat.wins + int(won),
        draws=stat.draws + int(drawn),
        losses=stat.losses + int(not won and not drawn),
        goals_for=stat.goals_for + goals_for,
        goals_against=stat.goals_against + goals_against,
        goal_difference=stat.goal_difference + goals_for - goals_against,
    )


def build_team_stats(team_ids: Sequence[str], games: Sequence[Game]) -> Dict[str, TeamStat]:
    """team_id -> TeamStat from the games that have full-time scores."""
    scored = _scored_games(games)
    is_complete = len(scored) == len(games)

    stats: Dict[str, TeamStat] = {t: TeamStat(team_id=t, is_complete=is_complete) for t in team_ids}
    for g in scored:
        if g.home_team in stats:
            stats[g.home_team] = apply_game(stats[g.home_team], g.result.home_score, g.result.away_score)
        if g.away_team in stats:
            stats[g.away_team] = apply_game(stats[g.away_team], g.result.away_score, g.result.home_score)
    return stats


# -----------------------------
# Ordering
# -----------------------------
def generic_sort_key(s: TeamStat) -> Tuple[int, int, int]:
    # Points, then goal difference, then goals scored (all desc)
    return (s.points, s.goal_difference, s.goals_for)


def points_sort_key(s: TeamStat) -> Tuple[int]:
    return (s.points,)


def _direct_winner(a: str, b: str, games: Sequence[Game]) -> Optional[str]:
    for g in _scored_games(games):
        if {g.home_team, g.away_team} == {a, b}:
            return g.result.winner(g.home_team, g.away_team)
    return None


def _resolve_three_way_tie(
    ordered: List[TeamStat],
    stats: Dict[str, TeamStat],
    games: Sequence[Game],
    same: Callable[[TeamStat, TeamStat], bool],
    sort_by_games_between_teams: bool,
) -> bool:
    """
    Reorder a three-way tie inside a four-team group using a mini-table of the
    games among the tied teams. Returns True when a three-way tie was handled.
    """
    if len(ordered) != 4:
        return False

    top = same(ordered[0], ordered[1]) and same(ordered[1], ordered[2])
    bottom = same(ordered[1], ordered[2]) and same(ordered[2], ordered[3])
    if not (top or bottom):
        return False

    base = 0 if top else 1
    tied = [s.team_id for s in ordered[base:base + 3]]
    tied_games = [g for g in games if g.home_team in tied and g.away_team in tied]

    mini = calculate_group_position(tied, tied_games, sort_by_games_between_teams)
    mini = sorted(mini, key=generic_sort_key, reverse=True)
    for i, s in enumerate(mini):
        ordered[base + i] = stats[s.team_id]
    return True


def calculate_group_position(
    team_ids: Sequence[str],
    games: Sequence[Game],
    sort_by_games_between_teams: bool = False,
) -> List[TeamStat]:
    """
    Group table for `team_ids`, best first.

    Tie-break order:
    - default: points, goal difference, goals for; then the direct game
    - sort_by_games_between_teams: points, then the direct game, then the
      default stats order. If every team is level on points the default
      order is used for the whole group.
    """
    stats = build_team_stats(team_ids, games)

    key = points_sort_key if sort_by_games_between_teams else generic_sort_key
    # sorted() is stable, so team_ids order breaks exact ties
    ordered = sorted(stats.values(), key=key, reverse=True)

    if sort_by_games_between_teams and ordered and all(s.points == ordered[0].points for s in ordered):
        return calculate_group_position(team_ids, games, False)

    def same(a: TeamStat, b: TeamStat) -> bool:
        return key(a) == key(b)

    if _resolve_three_way_tie(ordered, stats, games, same, sort_by_games_between_teams):
        return ordered

    for i in range(len(ordered) - 1):
        a, b = ordered[i], ordered[i + 1]
        if not same(a, b):
            continue

        winner = _direct_winner(a.team_id, b.team_id, games)
        if winner is not None and winner != a.team_id:
            ordered[i], ordered[i + 1] = b, a
        elif winner is None and sort_by_games_between_teams:
            if generic_sort_key(b) > generic_sort_key(a):
                ordered[i], ordered[i + 1] = b, a

    return ordered


def rank_group(ordered: Sequence[TeamStat]) -> List[RankedTeamStat]:
    """Competition ranks on points over an already-ordered group table."""
    return calculate_ranks(ordered, "points")


def group_positions(ordered: Sequence[TeamStat]) -> Dict[str, int]:
    """team_id -> 1-based finishing position (tie-breaks already applied)."""
    return {s.team_id: i for i, s in enumerate(ordered, start=1)}
