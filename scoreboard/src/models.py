"""Shared constants and the scoring context passed through auto-column evaluation.

Columns, rules, templates and players stay plain JSON dicts (camelCase keys,
exactly as persisted). Only the per-call evaluation context is a dataclass.
"""
from __future__ import annotations

import math
import re
import secrets
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Final, Literal

PLAYER_COUNT_ID: Final[str] = "__PLAYER_COUNT__"
MAX_AUTO_DEPTH: Final[int] = 5

ID_LENGTH_UUID: Final[int] = 36
ID_LENGTH_DEFAULT: Final[int] = 8
ID_LENGTH_SHORT: Final[int] = 6

_BASE62: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
_LEADING_NUMBER_RE: Final = re.compile(
    r"^\s*[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
)

RoundingMode = Literal["none", "round", "floor", "ceil"]
VariableMode = Literal["value", "rank_score", "rank_player", "tie_count"]
InputMethod = Literal["keypad", "clicker", "auto"]
ScoringRule = Literal["HIGHEST_WINS", "LOWEST_WINS", "COOP", "COMPETITIVE_NO_SCORE", "COOP_NO_SCORE"]
AutoColumnError = Literal["missing_dependency", "math_error"]

FORMULA_IDENTITY: Final[str] = "a1"
FORMULA_CONSTANT: Final[str] = "a1×c1"
FORMULA_PRODUCT: Final[str] = "a1×a2"
FORMULA_SUM_PARTS: Final[str] = "a1+next"
FORMULA_LOOKUP: Final[str] = "f1(a1)"


@dataclass(frozen=True)
class ScoringContext:
    all_columns: list[dict[str, Any]] = field(default_factory=list)
    player_scores: dict[str, Any] = field(default_factory=dict)
    all_players: list[dict[str, Any]] | None = None
    depth: int = 0

    def descend(self, player_scores: dict[str, Any] | None = None) -> ScoringContext:
        """Same context one recursion level deeper, optionally for another player's scores."""
        scores = self.player_scores if player_scores is None else player_scores
        return replace(self, player_scores=scores, depth=self.depth + 1)

    def find_column(self, column_id: str) -> dict[str, Any] | None:
        for col in self.all_columns:
            if isinstance(col, dict) and col.get("id") == column_id:
                return col
        return None


def generate_id(length: int = ID_LENGTH_UUID) -> str:
    """UUID4 for the default length, otherwise a random base62 string."""
    if length == ID_LENGTH_UUID:
        return str(uuid.uuid4())
    return "".join(secrets.choice(_BASE62) for _ in range(length))


def score_parts(score_value: Any) -> list[float]:
    """The stored `parts` of a ScoreValue, or [] for anything else."""
    if isinstance(score_value, dict):
        parts = score_value.get("parts")
        if isinstance(parts, list):
            return parts
    return []


def parse_number(value: Any) -> float | None:
    """
    Lenient numeric coercion with JavaScript `parseFloat` rules for text:
    the leading numeric prefix counts ("5." -> 5, "5abc" -> 5), anything
    without one is None. Integers too large for a float become +/-inf.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.copysign(math.inf, value)
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(value)
        return float(m.group(0)) if m else None
    return None
