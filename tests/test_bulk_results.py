from __future__ import annotations

import random
from unittest.mock import Mock

import pytest

from prode_engine.bulk_results import BulkResultService, parse_scope, ScopeError
from prode_engine.collaborators import build_service
from prode_engine.models import (
    Game,
    GameResult,
    Group,
    GroupScope,
    PlayoffRound,
    PlayoffScope,
    Principal,
)
from prode_engine.score_sampler import InvalidLambdaError
from prode_engine.store import MOCK_TOURNAMENT_ID, StaticAuth

ADMIN = Principal("admin", is_admin=True)


def _service(principal=ADMIN, **kwargs):
    repos = Mock()
    repos.groups.group_by_id.return_value = Group("grp-a", "t1", "A")
    repos.playoffs.playoff_round_by_id.return_value = PlayoffRound("r16", "t1", "Round of 16")
    service = BulkResultService(
        auth=StaticAuth(principal),
        games=repos.games,
        results=repos.results,
        groups=repos.groups,
        playoffs=repos.playoffs,
        pipeline=repos.pipeline,
        rng=random.Random(1),
        **kwargs,
    )
    return service, repos


# -----------------------
# Scope parsing
# -----------------------
def test_parse_scope_requires_exactly_one_id() -> None:
    assert parse_scope("grp-a") == GroupScope("grp-a")
    assert parse_scope(playoff_round_id="r16") == PlayoffScope("r16")
    with pytest.raises(ScopeError):
        parse_scope()
    with pytest.raises(ScopeError):
        parse_scope("grp-a", "r16")


# -----------------------
# Authorization / validation
# -----------------------
@pytest.mark.parametrize("principal", [None, Principal("ana", is_admin=False)])
def test_non_admin_is_rejected_without_reads(principal) -> None:
    service, repos = _service(principal)

    fill = service.auto_fill_game_scores(group_id="grp-a")
    clear = service.clear_game_scores(group_id="grp-a")
    scoped = service.auto_fill(GroupScope("grp-a"))

    for outcome in (fill, clear, scoped):
        assert outcome.success is False
        assert outcome.error == "scoreGenerator.unauthorized"
    assert repos.mock_calls == []


def test_missing_scope_is_rejected_without_reads() -> None:
    service, repos = _service()

    assert service.auto_fill_game_scores().to_dict() == {
        "success": False,
        "error": "scoreGenerator.requireGroupOrPlayoff",
    }
    assert service.clear_game_scores().error == "scoreGenerator.requireGroupOrPlayoff"
    assert service.auto_fill_game_scores("grp-a", "r16").error == "scoreGenerator.requireGroupOrPlayoff"
    assert repos.mock_calls == []


def test_unknown_group_and_round() -> None:
    service, repos = _service()
    repos.groups.group_by_id.return_value = None
    repos.playoffs.playoff_round_by_id.return_value = None

    assert service.auto_fill_game_scores(group_id="nope").error == "scoreGenerator.groupNotFound"
    assert service.clear_game_scores(playoff_round_id="nope").error == "scoreGenerator.playoffRoundNotFound"
    repos.results.create_result.assert_not_called()
    repos.pipeline.run.assert_not_called()


# -----------------------
# Auto-fill
# -----------------------
def test_auto_fill_only_touches_unpublished_games() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [
        Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a"),
        Game("g2", "t1", "group", "POL", "KSA", group_id="grp-a"),
    ]
    repos.results.results_by_game_ids.return_value = [GameResult("g1", 2, 0, is_draft=False)]

    outcome = service.auto_fill_game_scores(group_id="grp-a")

    assert outcome.to_dict() == {"success": True, "filled_count": 1, "skipped_count": 1}
    repos.results.update_result.assert_not_called()
    repos.results.create_result.assert_called_once()
    created = repos.results.create_result.call_args[0][0]
    assert created.game_id == "g2"
    assert created.is_draft is False
    assert created.home_score >= 0 and created.away_score >= 0
    # Group games never get penalties
    assert created.home_penalty_score is None and created.away_penalty_score is None
    repos.pipeline.run.assert_called_once_with("t1", "grp-a")


def test_auto_fill_updates_draft_rows_in_place() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a")]
    repos.results.results_by_game_ids.return_value = [GameResult("g1", 1, 1, is_draft=True)]

    outcome = service.auto_fill_game_scores(group_id="grp-a")

    assert outcome.filled_count == 1 and outcome.skipped_count == 0
    repos.results.create_result.assert_not_called()
    game_id, fields = repos.results.update_result.call_args[0]
    assert game_id == "g1"
    assert fields["is_draft"] is False
    assert set(fields) == {"home_score", "away_score", "home_penalty_score", "away_penalty_score", "is_draft"}


def test_auto_fill_with_everything_published_skips_pipeline() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a")]
    repos.results.results_by_game_ids.return_value = [GameResult("g1", 0, 0)]

    outcome = service.auto_fill_game_scores(group_id="grp-a")

    assert outcome.to_dict() == {"success": True, "filled_count": 0, "skipped_count": 1}
    repos.pipeline.run.assert_not_called()


def test_auto_fill_playoff_round_filters_games_and_skips_group_stage() -> None:
    service, repos = _service()
    repos.games.games_in_tournament.return_value = [
        Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a"),
        Game("p1", "t1", "playoff", "ARG", "FRA", playoff_round_id="r16"),
        Game("p2", "t1", "playoff", "BRA", "CRO", playoff_round_id="qf"),
    ]
    repos.results.results_by_game_ids.return_value = []

    outcome = service.auto_fill_game_scores(playoff_round_id="r16")

    assert outcome.filled_count == 1
    repos.games.games_in_tournament.assert_called_once_with("t1", True)
    repos.results.results_by_game_ids.assert_called_once_with(["p1"], True)
    assert repos.results.create_result.call_args[0][0].game_id == "p1"
    repos.pipeline.run.assert_called_once_with("t1", None)


def test_auto_fill_downstream_failure_becomes_error_result() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a")]
    repos.results.results_by_game_ids.return_value = []
    repos.results.create_result.side_effect = RuntimeError("database is down")

    outcome = service.auto_fill_game_scores(group_id="grp-a")

    assert outcome.to_dict() == {"success": False, "error": "database is down"}
    repos.pipeline.run.assert_not_called()


def test_pipeline_failure_becomes_error_result() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a")]
    repos.results.results_by_game_ids.return_value = []
    repos.pipeline.run.side_effect = RuntimeError("scores failed")

    assert service.auto_fill_game_scores(group_id="grp-a").error == "scores failed"


def test_invalid_lambda_is_not_swallowed() -> None:
    service, repos = _service(lam=0)
    repos.games.games_in_group.return_value = [Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a")]
    repos.results.results_by_game_ids.return_value = []

    with pytest.raises(InvalidLambdaError):
        service.auto_fill_game_scores(group_id="grp-a")


# -----------------------
# Clear
# -----------------------
def test_clear_resets_only_games_with_results() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [
        Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a", result=GameResult("g1", 2, 1)),
        Game("g2", "t1", "group", "POL", "KSA", group_id="grp-a", result=GameResult("g2", 0, 0, is_draft=True)),
        Game("g3", "t1", "group", "ARG", "POL", group_id="grp-a"),
    ]

    outcome = service.clear_game_scores(group_id="grp-a")

    assert outcome.to_dict() == {"success": True, "cleared_count": 2}
    cleared_ids = [c[0][0] for c in repos.results.update_result.call_args_list]
    assert cleared_ids == ["g1", "g2"]
    fields = repos.results.update_result.call_args_list[0][0][1]
    assert fields == {
        "home_score": None,
        "away_score": None,
        "home_penalty_score": None,
        "away_penalty_score": None,
        "is_draft": True,
    }
    repos.pipeline.run.assert_called_once_with("t1", "grp-a")


def test_clear_with_nothing_to_clear_skips_pipeline() -> None:
    service, repos = _service()
    repos.games.games_in_group.return_value = [
        Game("g1", "t1", "group", "ARG", "MEX", group_id="grp-a"),
        # An already-cleared row counts as no result
        Game("g2", "t1", "group", "POL", "KSA", group_id="grp-a", result=GameResult("g2", is_draft=True)),
    ]

    assert service.clear_game_scores(group_id="grp-a").to_dict() == {"success": True, "cleared_count": 0}
    repos.results.update_result.assert_not_called()
    repos.pipeline.run.assert_not_called()


def test_clear_downstream_failure_becomes_error_result() -> None:
    service, repos = _service()
    repos.games.games_in_group.side_effect = RuntimeError("timeout")

    assert service.clear_game_scores(group_id="grp-a").to_dict() == {"success": False, "error": "timeout"}


# -----------------------
# Against the in-memory store
# -----------------------
def test_auto_fill_then_rerun_is_a_no_op(store, admin_service) -> None:
    first = admin_service.auto_fill_game_scores(group_id="group-a")
    assert first.to_dict() == {"success": True, "filled_count": 6, "skipped_count": 0}

    second = admin_service.auto_fill_game_scores(group_id="group-a")
    assert second.to_dict() == {"success": True, "filled_count": 0, "skipped_count": 6}

    table = store.standings["group-a"]
    assert len(table) == 4
    assert all(s.is_complete and s.games_played == 3 for s in table)


def test_clear_then_refill_reuses_rows(store, admin_service) -> None:
    admin_service.auto_fill_game_scores(group_id="group-a")

    assert admin_service.clear_game_scores(group_id="group-a").cleared_count == 6
    assert all(store.results[g].is_draft and not store.results[g].has_scores for g in ("a1", "a6"))
    assert admin_service.clear_game_scores(group_id="group-a").cleared_count == 0
    assert not any(s.is_complete for s in store.standings["group-a"])

    refill = admin_service.auto_fill_game_scores(group_id="group-a")
    assert refill.filled_count == 6
    assert not store.results["a1"].is_draft


def test_full_tournament_flows_through_the_bracket(store, admin_service) -> None:
    admin_service.auto_fill_game_scores(group_id="group-a")
    admin_service.auto_fill_game_scores(group_id="group-b")

    winner_a = store.standings["group-a"][0].team_id
    runner_up_b = store.standings["group-b"][1].team_id
    assert (store.games["sf1"].home_team, store.games["sf1"].away_team) == (winner_a, runner_up_b)
    assert store.games["final"].home_team is None

    semis = admin_service.auto_fill_game_scores(playoff_round_id="round-semis")
    assert semis.filled_count == 2

    sf1 = store.results["sf1"]
    expected = sf1.winner(store.games["sf1"].home_team, store.games["sf1"].away_team)
    assert expected is not None
    assert store.games["final"].home_team == expected

    for user in ("ana", "bruno"):
        assert (MOCK_TOURNAMENT_ID, user) in store.game_scores
        assert (MOCK_TOURNAMENT_ID, user) in store.qualified_scores


def test_unknown_group_against_store(store) -> None:
    service = build_service(store, StaticAuth(ADMIN))
    assert service.clear(GroupScope("group-z")).error == "scoreGenerator.groupNotFound"
