# prode_engine/rank_calculator.py
from __future__ import annotations

import dataclasses
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from prode_engine.models import RankedTeamStat, TeamStat, with_rank

KeySelector = Union[str, Callable[[Any], Any]]


def _selector(key: KeySelector) -> Callable[[Any], Any]:
    if callable(key):
        return key

    def pick(item: Any) -> Any:
        if isinstance(item, dict):
            return item.get(key)
        return getattr(item, key)

    return pick


def _attach_rank(item: Any, rank: int) -> Any:
    if isinstance(item, TeamStat):
        return with_rank(item, rank)
    if isinstance(item, dict):
        out = dict(item)
        out["current_rank"] = rank
        return out
    if dataclasses.is_dataclass(item) and hasattr(item, "current_rank"):
        return dataclasses.replace(item, current_rank=rank)
    raise TypeError(f"Cannot attach a rank to {type(item).__name__}")


def calculate_ranks(items: Sequence[Any], key: KeySelector) -> List[Any]:
    """
    Assign competition ranks to an already-ordered sequence.

    The caller sorts with its full tie-break chain; only `key` decides whether
    two neighbours share a rank. A new key value takes its 1-based position:

      keys [10, 8, 8, 5] -> ranks [1, 2, 2, 4]
      keys [5, 5, 5]     -> ranks [1, 1, 1]

    TeamStat rows come back as RankedTeamStat, dicts as copies with
    "current_rank". Input is never mutated.
    """
    pick = _selector(key)

    out: List[Any] = []
    prev_value: Any = None
    prev_rank = 0
    for position, item in enumerate(items, start=1):
        value = pick(item)
        rank = prev_rank if position > 1 and value == prev_value else position
        out.append(_attach_rank(item, rank))
        prev_value = value
        prev_rank = rank
    return out


def _item_id(item: Any, id_key: str) -> Any:
    if isinstance(item, dict):
        return item.get(id_key)
    return getattr(item, id_key)


def calculate_ranks_with_change(
    ranked: Sequence[Any],
    previous_key: KeySelector,
    id_key: str = "team_id",
) -> List[Any]:
    """
    Annotate already-ranked rows with rank_change against a previous snapshot.

    The previous ranking is rebuilt from `previous_key` (sorted descending).
    rank_change = previous_rank - current_rank, so positive means moved up.
    Rows with no previous value get 0.
    """
    pick = _selector(previous_key)

    with_previous = [r for r in ranked if pick(r) is not None]
    ordered = sorted(with_previous, key=pick, reverse=True)
    previous_ranks: Dict[Any, int] = {
        _item_id(r, id_key): r_ranked["current_rank"]
        for r, r_ranked in zip(ordered, calculate_ranks([{"v": pick(r)} for r in ordered], "v"))
    }

    out: List[Any] = []
    for row in ranked:
        previous: Optional[int] = previous_ranks.get(_item_id(row, id_key))
        current = row["current_rank"] if isinstance(row, dict) else row.current_rank
        change = 0 if previous is None else previous - current

        if isinstance(row, dict):
            new_row = dict(row)
            new_row["rank_change"] = change
            out.append(new_row)
        elif isinstance(row, RankedTeamStat):
            out.append(dataclasses.replace(row, rank_change=change))
        else:
            raise TypeError(f"Cannot attach a rank change to {type(row).__name__}")
    return out
