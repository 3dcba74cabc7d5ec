from __future__ import annotations

from typing import Sequence


def get_score_rank(value: float, all_values: Sequence[float]) -> int:
    """Dense rank among distinct values, highest first: 100(1), 100(1), 90(2)."""
    if not all_values:
        return 1
    distinct = sorted(set(all_values), reverse=True)
    if value not in distinct:
        return len(distinct) + 1
    return distinct.index(value) + 1


def get_player_rank(value: float, all_values: Sequence[float]) -> int:
    """Standard competition rank, highest first: 100(1), 100(1), 90(3)."""
    if not all_values:
        return 1
    return sum(1 for v in all_values if v > value) + 1


def get_tie_count(value: float, all_values: Sequence[float]) -> int:
    """Players sharing `value`, self included."""
    if not all_values:
        return 1
    return sum(1 for v in all_values if v == value)


def rank_for_mode(mode: str, value: float, all_values: Sequence[float]) -> float:
    if mode == "rank_score":
        return get_score_rank(value, all_values)
    if mode == "rank_player":
        return get_player_rank(value, all_values)
    if mode == "tie_count":
        return get_tie_count(value, all_values)
    return value
