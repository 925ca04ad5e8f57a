# prode_engine/game_scoring.py
from __future__ import annotations

from typing import Dict, Iterable, Optional

from prode_engine.models import Game, GameGuess, GameResult

EXACT_SCORE_POINTS = 2
CORRECT_OUTCOME_POINTS = 1


def _sign(x: int) -> int:
    return (x > 0) - (x < 0)


def _guess_has_scores(guess: Optional[GameGuess]) -> bool:
    return guess is not None and isinstance(guess.home_score, int) and isinstance(guess.away_score, int)


def calculate_score_for_game(game: Game, result: Optional[GameResult], guess: Optional[GameGuess]) -> int:
    """
    Points a single guess earns against a published result.

    Rules:
    - exact score: 2
    - right outcome (home win / draw / away win): 1
    - in a drawn playoff game both of the above drop to 0 if the guess backed
      the wrong shootout winner
    - drawn playoff game, guess picked the shootout winner (or that side to
      win outright): 1
    - guess was a draw with a shootout winner, real game was a straight win
      for that side: 1
    - anything else: 0
    """
    if result is None or not result.has_scores or not _guess_has_scores(guess):
        return 0

    home, away = result.home_score, result.away_score
    is_playoff = game.is_playoff
    is_tie = home == away
    guess_tie = guess.home_score == guess.away_score

    home_pen_win = False
    away_pen_win = False
    if is_playoff and is_tie and result.home_penalty_score is not None and result.away_penalty_score is not None:
        home_pen_win = result.home_penalty_score > result.away_penalty_score
        away_pen_win = result.home_penalty_score < result.away_penalty_score

    wrong_shootout = (home_pen_win and not guess.home_penalty_winner) or (
        away_pen_win and not guess.away_penalty_winner
    )

    if home == guess.home_score and away == guess.away_score:
        return 0 if wrong_shootout else EXACT_SCORE_POINTS

    if _sign(home - away) == _sign(guess.home_score - guess.away_score):
        return 0 if wrong_shootout else CORRECT_OUTCOME_POINTS

    if is_playoff and is_tie:
        if home_pen_win and (guess.home_penalty_winner or guess.home_score > guess.away_score):
            return CORRECT_OUTCOME_POINTS
        if away_pen_win and (guess.away_penalty_winner or guess.home_score < guess.away_score):
            return CORRECT_OUTCOME_POINTS

    if is_playoff and guess_tie:
        if (guess.home_penalty_winner and home > away) or (guess.away_penalty_winner and home < away):
            return CORRECT_OUTCOME_POINTS

    return 0


def total_scores_by_user(
    games: Iterable[Game],
    results: Dict[str, GameResult],
    guesses: Iterable[GameGuess],
    apply_boosts: bool = False,
) -> Dict[str, int]:
    """user_id -> summed points over published results (drafts never score)."""
    by_id = {g.id: g for g in games}
    totals: Dict[str, int] = {}
    for guess in guesses:
        game = by_id.get(guess.game_id)
        if game is None:
            continue

        totals.setdefault(guess.user_id, 0)
        result = results.get(guess.game_id)
        if result is None or result.is_draft:
            continue

        points = calculate_score_for_game(game, result, guess)
        if apply_boosts:
            points *= max(1, guess.boost_multiplier)
        totals[guess.user_id] += points
    return totals
