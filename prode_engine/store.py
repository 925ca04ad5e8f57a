# prode_engine/store.py
from __future__ import annotations

from dataclasses import replace
from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence, Tuple

from prode_engine.models import (
    Game,
    GameGuess,
    GameResult,
    Group,
    GroupPositionPrediction,
    PlayoffRound,
    Principal,
    TeamStat,
)

_RESULT_FIELDS = {"home_score", "away_score", "home_penalty_score", "away_penalty_score", "is_draft"}


class InMemoryStore:
    """
    Single-process store backing every repository the engine reads from.

    Fine for tests, the demo app and single-instance deploys; a real database
    adapter only has to provide the same methods.

    Derived state (standings, scores) is written by the calculators in
    collaborators.py and keyed by group / (tournament, user).
    """

    def __init__(self) -> None:
        self.users: Dict[str, Principal] = {}
        self.games: Dict[str, Game] = {}
        self.results: Dict[str, GameResult] = {}
        self.groups: Dict[str, Group] = {}
        self.group_teams: Dict[str, List[str]] = {}
        self.rounds: Dict[str, PlayoffRound] = {}
        self.guesses: List[GameGuess] = []
        self.predictions: List[GroupPositionPrediction] = []

        # Derived state
        self.standings: Dict[str, List[TeamStat]] = {}
        self.game_scores: Dict[Tuple[str, str], int] = {}
        self.boosted_scores: Dict[Tuple[str, str], int] = {}
        self.score_history: Dict[Tuple[str, str], List[int]] = {}
        self.qualified_scores: Dict[Tuple[str, str], int] = {}
        # Totals as of the previous recalculation, for leaderboard movement
        self.previous_totals: Dict[Tuple[str, str], int] = {}

    # -----------------------
    # Seeding
    # -----------------------
    def add_user(self, user: Principal) -> None:
        self.users[user.id] = user

    def add_group(self, group: Group, team_ids: Sequence[str]) -> None:
        self.groups[group.id] = group
        self.group_teams[group.id] = list(team_ids)

    def add_round(self, rnd: PlayoffRound) -> None:
        self.rounds[rnd.id] = rnd

    def add_game(self, game: Game) -> None:
        # Results live in self.results, never on the stored game
        self.games[game.id] = replace(game, result=None)

    def add_guess(self, guess: GameGuess) -> None:
        self.guesses.append(guess)

    def add_prediction(self, prediction: GroupPositionPrediction) -> None:
        self.predictions.append(prediction)

    # -----------------------
    # GameRepository
    # -----------------------
    def _with_result(self, game: Game) -> Game:
        return replace(game, result=self.results.get(game.id))

    def games_in_group(self, group_id: str, with_results: bool, with_teams: bool) -> List[Game]:
        # Team ids are always on the game; with_teams is accepted for interface parity
        games = [g for g in self.games.values() if g.group_id == group_id]
        if with_results:
            games = [self._with_result(g) for g in games]
        return games

    def games_in_tournament(self, tournament_id: str, with_teams: bool) -> List[Game]:
        return [self._with_result(g) for g in self.games.values() if g.tournament_id == tournament_id]

    def assign_teams(self, game_id: str, home_team: Optional[str], away_team: Optional[str]) -> None:
        game = self.games[game_id]
        self.games[game_id] = replace(game, home_team=home_team, away_team=away_team)

    # -----------------------
    # ResultRepository
    # -----------------------
    def results_by_game_ids(self, game_ids: Sequence[str], include_drafts: bool) -> List[GameResult]:
        out: List[GameResult] = []
        for gid in game_ids:
            r = self.results.get(gid)
            if r is None or (r.is_draft and not include_drafts):
                continue
            out.append(r)
        return out

    def create_result(self, result: GameResult) -> GameResult:
        if result.game_id not in self.games:
            raise KeyError(f"Unknown game: {result.game_id}")
        if result.game_id in self.results:
            raise ValueError(f"Result already exists for game {result.game_id}")
        self.results[result.game_id] = result
        return result

    def update_result(self, game_id: str, fields: Dict[str, Any]) -> Optional[GameResult]:
        current = self.results.get(game_id)
        if current is None:
            return None
        unknown = set(fields) - _RESULT_FIELDS
        if unknown:
            raise ValueError(f"Unknown result field(s): {sorted(unknown)}")
        updated = replace(current, **fields)
        self.results[game_id] = updated
        return updated

    # -----------------------
    # GroupRepository / PlayoffRepository
    # -----------------------
    def group_by_id(self, group_id: str) -> Optional[Group]:
        return self.groups.get(group_id)

    def team_ids_in_group(self, group_id: str) -> List[str]:
        return list(self.group_teams.get(group_id, []))

    def groups_in_tournament(self, tournament_id: str) -> List[Group]:
        groups = [g for g in self.groups.values() if g.tournament_id == tournament_id]
        return sorted(groups, key=lambda g: g.group_letter)

    def playoff_round_by_id(self, playoff_round_id: str) -> Optional[PlayoffRound]:
        return self.rounds.get(playoff_round_id)

    def rounds_in_tournament(self, tournament_id: str) -> List[PlayoffRound]:
        rounds = [r for r in self.rounds.values() if r.tournament_id == tournament_id]
        return sorted(rounds, key=lambda r: r.order)

    # -----------------------
    # Guesses / predictions
    # -----------------------
    def guesses_for_games(self, game_ids: Sequence[str]) -> List[GameGuess]:
        wanted = set(game_ids)
        return [g for g in self.guesses if g.game_id in wanted]

    def predictions_for_groups(self, group_ids: Sequence[str]) -> List[GroupPositionPrediction]:
        wanted = set(group_ids)
        return [p for p in self.predictions if p.group_id in wanted]

    def _users_with_scores(self, tournament_id: str) -> List[str]:
        users = {u for (t, u) in self.game_scores if t == tournament_id}
        users |= {u for (t, u) in self.qualified_scores if t == tournament_id}
        return sorted(users)

    def snapshot_totals(self, tournament_id: str) -> None:
        for u in self._users_with_scores(tournament_id):
            key = (tournament_id, u)
            self.previous_totals[key] = self.game_scores.get(key, 0) + self.qualified_scores.get(key, 0)

    def scores_for_tournament(self, tournament_id: str) -> List[Dict[str, Any]]:
        """
        One row per user with base / qualified-teams totals.

        boosted_game_points is None until boosts have been recomputed;
        previous_total_points is None before the user's first recalculation.
        """
        rows = []
        for u in self._users_with_scores(tournament_id):
            game = self.game_scores.get((tournament_id, u), 0)
            qualified = self.qualified_scores.get((tournament_id, u), 0)
            rows.append({
                "user_id": u,
                "game_points": game,
                "boosted_game_points": self.boosted_scores.get((tournament_id, u)),
                "qualified_teams_points": qualified,
                "total_points": game + qualified,
                "previous_total_points": self.previous_totals.get((tournament_id, u)),
            })
        return rows


class StaticAuth:
    """AuthContext that always reports the same principal (or nobody)."""

    def __init__(self, principal: Optional[Principal]) -> None:
        self.principal = principal

    def current_user(self) -> Optional[Principal]:
        return self.principal


# -----------------------------
# Mock tournament
# -----------------------------
MOCK_TOURNAMENT_ID = "wc-mock"


def create_mock_store() -> InMemoryStore:
    """
    Small two-group tournament with semifinals and a final. Mock only.

    Groups A and B (4 teams, 6 games each), semis 1A-2B / 1B-2A, final
    between the semi winners. One admin and two players with guesses and
    qualification predictions.
    """
    store = InMemoryStore()
    t = MOCK_TOURNAMENT_ID

    store.add_user(Principal("admin", is_admin=True))
    store.add_user(Principal("ana"))
    store.add_user(Principal("bruno"))

    teams = {
        "A": ["ARG", "MEX", "POL", "KSA"],
        "B": ["FRA", "DEN", "TUN", "AUS"],
    }
    for letter, team_ids in teams.items():
        group_id = f"group-{letter.lower()}"
        store.add_group(Group(group_id, t, letter, sort_by_games_between_teams=(letter == "B")), team_ids)
        for n, (home, away) in enumerate(combinations(team_ids, 2), start=1):
            store.add_game(Game(f"{letter.lower()}{n}", t, "group", home, away, group_id=group_id))

    store.add_round(PlayoffRound("round-semis", t, "Semifinals", order=1, is_first_stage=True))
    store.add_round(PlayoffRound("round-final", t, "Final", order=2))
    store.add_game(Game(
        "sf1", t, "playoff", playoff_round_id="round-semis",
        home_team_rule={"group": "A", "position": 1}, away_team_rule={"group": "B", "position": 2},
    ))
    store.add_game(Game(
        "sf2", t, "playoff", playoff_round_id="round-semis",
        home_team_rule={"group": "B", "position": 1}, away_team_rule={"group": "A", "position": 2},
    ))
    store.add_game(Game(
        "final", t, "playoff", playoff_round_id="round-final",
        home_team_rule={"winner_of": "sf1"}, away_team_rule={"winner_of": "sf2"},
    ))

    # Ana backs home sides, Bruno calls draws; both boost the final
    for gid in store.games:
        store.add_guess(GameGuess("ana", gid, 2, 1, boost_multiplier=2 if gid == "final" else 1))
        store.add_guess(GameGuess("bruno", gid, 1, 1, home_penalty_winner=True,
                                  boost_multiplier=3 if gid == "final" else 1))

    for letter, team_ids in teams.items():
        group_id = f"group-{letter.lower()}"
        for pos, team in enumerate(team_ids, start=1):
            store.add_prediction(GroupPositionPrediction("ana", group_id, team, pos, pos <= 2))
            store.add_prediction(GroupPositionPrediction("bruno", group_id, team, 5 - pos, pos >= 3))

    return store
