from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from prode_engine.models import Game, GameResult
from prode_engine.standings import calculate_group_position, group_positions, rank_group


def _games(rows: Sequence[Tuple[str, str, Optional[int], Optional[int]]]) -> List[Game]:
    out = []
    for n, (home, away, hs, as_) in enumerate(rows, start=1):
        result = None if hs is None else GameResult(f"g{n}", hs, as_)
        out.append(Game(f"g{n}", "t1", "group", home, away, group_id="grp", result=result))
    return out


def _order(stats) -> List[str]:
    return [s.team_id for s in stats]


def test_points_goals_and_completion() -> None:
    games = _games([
        ("A", "B", 2, 0),
        ("C", "D", 1, 1),
        ("A", "C", 1, 0),
        ("B", "D", 3, 1),
        ("A", "D", 0, 0),
        ("B", "C", 2, 2),
    ])
    table = calculate_group_position(["A", "B", "C", "D"], games)

    assert _order(table) == ["A", "B", "C", "D"]
    a = table[0]
    assert (a.points, a.wins, a.draws, a.losses) == (7, 2, 1, 0)
    assert (a.goals_for, a.goals_against, a.goal_difference) == (3, 0, 3)
    assert all(s.goal_difference == s.goals_for - s.goals_against for s in table)
    assert all(s.is_complete for s in table)

    assert [r.current_rank for r in rank_group(table)] == [1, 2, 3, 3]
    assert group_positions(table) == {"A": 1, "B": 2, "C": 3, "D": 4}


def test_games_without_scores_are_ignored() -> None:
    games = _games([("A", "B", 1, 0), ("A", "C", None, None)])
    table = calculate_group_position(["A", "B", "C"], games)
    assert table[0].team_id == "A"
    assert table[0].games_played == 1
    assert not any(s.is_complete for s in table)


def test_direct_game_breaks_an_exact_stats_tie() -> None:
    games = _games([
        ("Y", "X", 1, 0),
        ("X", "Z", 1, 0),
        ("X", "W", 0, 0),
        ("Y", "Z", 0, 0),
        ("Y", "W", 0, 1),
        ("Z", "W", 0, 0),
    ])
    # X and Y finish on 4 pts, GD 0, GF 1; Y won the direct game
    assert _order(calculate_group_position(["X", "Y", "Z", "W"], games)) == ["W", "Y", "X", "Z"]


def test_head_to_head_flag_beats_goal_difference() -> None:
    games = _games([
        ("Q", "P", 1, 0),
        ("P", "R", 5, 0),
        ("P", "S", 0, 0),
        ("Q", "R", 0, 0),
        ("Q", "S", 0, 1),
        ("R", "S", 0, 0),
    ])
    team_ids = ["P", "Q", "R", "S"]

    assert _order(calculate_group_position(team_ids, games)) == ["S", "P", "Q", "R"]
    assert _order(calculate_group_position(team_ids, games, True)) == ["S", "Q", "P", "R"]


def test_head_to_head_flag_falls_back_when_everyone_is_level() -> None:
    games = _games([
        ("A", "B", 1, 0),
        ("B", "C", 3, 0),
        ("C", "A", 1, 0),
    ])
    # 3 pts each; goal difference decides: B +2, A 0, C -2
    assert _order(calculate_group_position(["A", "B", "C"], games, True)) == ["B", "A", "C"]


def test_three_way_tie_uses_mini_table() -> None:
    games = _games([
        ("A", "B", 2, 0),
        ("B", "C", 1, 0),
        ("C", "A", 1, 0),
        ("A", "D", 2, 1),
        ("B", "D", 3, 0),
        ("C", "D", 3, 1),
    ])
    table = calculate_group_position(["B", "A", "C", "D"], games)

    # A, B, C all on 6 pts, GF 4, GA 2; among themselves A +1, C 0, B -1
    assert {(s.points, s.goals_for, s.goals_against) for s in table[:3]} == {(6, 4, 2)}
    assert _order(table) == ["A", "C", "B", "D"]


def test_draft_scores_do_not_count() -> None:
    games = [
        Game("g1", "t1", "group", "A", "B", group_id="grp", result=GameResult("g1", 2, 0, is_draft=True)),
        Game("g2", "t1", "group", "A", "C", group_id="grp", result=GameResult("g2", 1, 0)),
    ]
    table = {s.team_id: s for s in calculate_group_position(["A", "B", "C"], games)}

    assert table["A"].games_played == 1 and table["A"].points == 3
    assert table["B"].games_played == 0
    assert not any(s.is_complete for s in table.values())
