# main.py (prediction-pool admin engine)
from __future__ import annotations

import random
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from prode_engine.bulk_results import (
    ERR_GROUP_NOT_FOUND,
    ERR_PLAYOFF_ROUND_NOT_FOUND,
    ERR_REQUIRE_SCOPE,
    ERR_UNAUTHORIZED,
)
from prode_engine.collaborators import build_service
from prode_engine.config import ADMIN_USER_IDS, DEFAULT_LAMBDA, DEMO_SEED, LOG_LEVEL, validate_config
from prode_engine.logging_setup import configure_logging
from prode_engine.models import Principal
from prode_engine.rank_calculator import calculate_ranks, calculate_ranks_with_change
from prode_engine.score_sampler import InvalidLambdaError, generate_match_score
from prode_engine.standings import calculate_group_position, rank_group
from prode_engine.store import StaticAuth, create_mock_store

# -----------------------
# App
# -----------------------
app = FastAPI(
    title="Prode Score Engine API",
    version="0.1.0",
    description="Admin API for simulated results, group standings and score recalculation",
)

# Module-level store (single-instance deploys); tests may swap it
store = create_mock_store()
rng = random.Random(DEMO_SEED)

# Bulk writes over the shared store run one at a time
_bulk_lock = Lock()


@app.on_event("startup")
def on_startup():
    validate_config()
    configure_logging(LOG_LEVEL)


@app.get("/health")
def health_check():
    return {"status": "ok", "time": datetime.utcnow().isoformat() + "Z"}


# -----------------------
# Helpers
# -----------------------
_ERROR_STATUS = {
    ERR_UNAUTHORIZED: 403,
    ERR_REQUIRE_SCOPE: 400,
    ERR_GROUP_NOT_FOUND: 404,
    ERR_PLAYOFF_ROUND_NOT_FOUND: 404,
}


def _principal(user_id: Optional[str]) -> Optional[Principal]:
    if not user_id:
        return None
    user_id = user_id.strip()
    if user_id in ADMIN_USER_IDS:
        return Principal(user_id, is_admin=True)
    return store.users.get(user_id)


def _raise_for_failure(payload: Dict[str, Any]) -> None:
    if payload.get("success"):
        return
    error = payload.get("error") or "Unknown error"
    raise HTTPException(status_code=_ERROR_STATUS.get(error, 500), detail=error)


# -----------------------
# Bulk result endpoints
# -----------------------
class ScopeRequest(BaseModel):
    group_id: Optional[str] = Field(None, description="Tournament group id (group stage games)")
    playoff_round_id: Optional[str] = Field(None, description="Playoff round id (playoff games)")


@app.post("/api/backoffice/auto-fill")
def auto_fill(req: ScopeRequest, x_user_id: Optional[str] = Header(default=None)):
    service = build_service(store, StaticAuth(_principal(x_user_id)), rng=rng)
    with _bulk_lock:
        payload = service.auto_fill_game_scores(req.group_id, req.playoff_round_id).to_dict()
    _raise_for_failure(payload)
    return payload


@app.post("/api/backoffice/clear")
def clear(req: ScopeRequest, x_user_id: Optional[str] = Header(default=None)):
    service = build_service(store, StaticAuth(_principal(x_user_id)), rng=rng)
    with _bulk_lock:
        payload = service.clear_game_scores(req.group_id, req.playoff_round_id).to_dict()
    _raise_for_failure(payload)
    return payload


# -----------------------
# Standings / leaderboard
# -----------------------
@app.get("/api/groups/{group_id}/standings")
def group_standings(group_id: str):
    group = store.group_by_id(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail=f"Unknown group: {group_id}")

    # Stored standings only exist after a recalculation; compute on the fly otherwise
    ordered = store.standings.get(group_id)
    if ordered is None:
        ordered = calculate_group_position(
            store.team_ids_in_group(group_id),
            store.games_in_group(group_id, True, False),
            group.sort_by_games_between_teams,
        )

    return {
        "group_id": group_id,
        "group_letter": group.group_letter,
        "sort_by_games_between_teams": group.sort_by_games_between_teams,
        "table": [
            {"pos": pos, **row.__dict__}
            for pos, row in enumerate(rank_group(ordered), start=1)
        ],
    }


@app.get("/api/tournaments/{tournament_id}/leaderboard")
def leaderboard(tournament_id: str):
    rows = store.scores_for_tournament(tournament_id)
    rows.sort(key=lambda r: (-r["total_points"], r["user_id"]))
    ranked = calculate_ranks(rows, "total_points")
    return {
        "tournament_id": tournament_id,
        "leaderboard": calculate_ranks_with_change(ranked, "previous_total_points", id_key="user_id"),
    }


# -----------------------
# Score sampler
# -----------------------
class SimulateMatchRequest(BaseModel):
    lambda_: float = Field(DEFAULT_LAMBDA, alias="lambda", description="Average goals per team")
    is_playoff: bool = Field(False, description="Drawn playoff games go to penalties")


@app.post("/api/simulate/match")
def simulate_match(req: SimulateMatchRequest):
    try:
        score = generate_match_score(req.lambda_, req.is_playoff, rng)
    except InvalidLambdaError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"input": req.model_dump(by_alias=True), "score": score.__dict__}
