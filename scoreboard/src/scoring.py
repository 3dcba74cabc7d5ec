"""Scoring engine: pure functions for computing column scores and player totals.

All functions here are stateless and depend only on template/player JSON
structures. Nothing in this module raises on bad data: a misconfigured column
degrades to a wrong-but-stable number so the scoreboard always renders.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable

from scoreboard.src.models import (
    FORMULA_CONSTANT,
    FORMULA_PRODUCT,
    MAX_AUTO_DEPTH,
    PLAYER_COUNT_ID,
    AutoColumnError,
    ScoringContext,
    parse_number,
    score_parts,
)
from scoreboard.src.ranking import rank_for_mode
from scoreboard.src.rules.formula import FormulaError, evaluate_formula, evaluate_strict, extract_identifiers
from scoreboard.src.rules.lookup import create_lookup_function

logger = logging.getLogger(__name__)

_RANK_MODES = ("rank_score", "rank_player", "tie_count")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> float:
    """Lenient number for in-progress keypad text ("5.", "-0", "12abc"); 0 when unreadable."""
    num = parse_number(value)
    return 0 if num is None else num


def _format_part(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def get_raw_value(score: Any) -> float:
    """Single number from any stored or transient score shape (0 when absent)."""
    if score is None:
        return 0
    if isinstance(score, dict):
        if isinstance(score.get("parts"), list):
            return sum(_to_number(p) for p in score["parts"])
        if "value" in score:
            return _to_number(score["value"])
        return 0
    return _to_number(score)


def get_score_history(score: Any) -> list[str]:
    if isinstance(score, dict):
        if isinstance(score.get("parts"), list):
            return [_format_part(p) for p in score["parts"]]
        if isinstance(score.get("history"), list):
            return list(score["history"])
    return []


def apply_rounding(value: float, mode: str | None) -> float:
    if not mode or mode == "none" or not _is_number(value) or not math.isfinite(value):
        return value
    if mode == "floor":
        return math.floor(value)
    if mode == "ceil":
        return math.ceil(value)
    if mode == "round":
        # Half rounds towards +inf, not to even.
        return math.floor(value + 0.5)
    return value


def build_functions(column: dict[str, Any]) -> dict[str, Callable[[float], float]]:
    """Lookup callables for `f1`, `f2`, ...; the legacy `f1` field fills in a missing functions.f1."""
    functions: dict[str, Callable[[float], float]] = {}
    declared = column.get("functions")
    if isinstance(declared, dict):
        for name, rules in declared.items():
            if isinstance(rules, list):
                functions[name] = create_lookup_function(rules)
    if "f1" not in functions and isinstance(column.get("f1"), list):
        functions["f1"] = create_lookup_function(column["f1"])
    return functions


def _target_score(target: dict[str, Any], player_scores: dict[str, Any], ctx: ScoringContext) -> float:
    parts = score_parts(player_scores.get(target.get("id")))
    return calculate_column_score(target, parts, ctx.descend(player_scores))


def resolve_variables(column: dict[str, Any], context: ScoringContext) -> dict[str, float]:
    """Current values of an auto column's variables for the context's player."""
    variables: dict[str, float] = {}
    variable_map = column.get("variableMap") or {}
    if not isinstance(variable_map, dict):
        return variables

    for var_name, ref in variable_map.items():
        ref = ref if isinstance(ref, dict) else {}
        ref_id = ref.get("id")

        if ref_id == PLAYER_COUNT_ID:
            variables[var_name] = len(context.all_players) if context.all_players else 0
            continue

        target = context.find_column(ref_id) if isinstance(ref_id, str) else None
        if target is None:
            variables[var_name] = 0
            continue

        value = _target_score(target, context.player_scores, context)

        mode = ref.get("mode")
        if mode in _RANK_MODES:
            if context.all_players:
                all_values = [
                    _target_score(target, p.get("scores") or {}, context)
                    for p in context.all_players
                    if isinstance(p, dict)
                ]
                value = rank_for_mode(mode, value, all_values)
            else:
                value = 1

        variables[var_name] = value
    return variables


def _calculate_auto_score(column: dict[str, Any], context: ScoringContext | None) -> float:
    if context is None:
        return 0
    if context.depth > MAX_AUTO_DEPTH:
        logger.debug("Auto column %r cut off at depth %d", column.get("id"), context.depth)
        return 0
    variables = resolve_variables(column, context)
    result = evaluate_formula(column.get("formula") or "", variables, build_functions(column))
    return apply_rounding(result, column.get("rounding"))


def calculate_column_score(
    column: dict[str, Any],
    parts: list[float] | None,
    context: ScoringContext | None = None,
) -> float:
    """
    Final score of one column for one player.

    Auto columns ignore `parts` and evaluate their formula against `context`;
    every other column derives its score from `parts` according to `formula`.
    """
    if column.get("isAuto") is True:
        return _calculate_auto_score(column, context)

    if not parts:
        return 0

    formula = column.get("formula") or ""
    values = [_to_number(p) for p in parts]

    if "+next" in formula:
        score = sum(values)
    elif formula == FORMULA_PRODUCT:
        second = values[1] if len(values) > 1 else 1
        score = values[0] * second
    elif formula.startswith("f1"):
        rules = column.get("f1")
        if not isinstance(rules, list):
            functions = column.get("functions")
            rules = functions.get("f1") if isinstance(functions, dict) else None
        score = create_lookup_function(rules)(values[0])
    else:
        score = values[0]
        if formula == FORMULA_CONSTANT:
            constants = column.get("constants") or {}
            c1 = constants.get("c1") if isinstance(constants, dict) else None
            score *= c1 if _is_number(c1) else 1

    return apply_rounding(score, column.get("rounding"))


def get_auto_column_error(column: dict[str, Any], context: ScoringContext | None = None) -> AutoColumnError | None:
    """
    Diagnose an auto column without computing it for real.

    'missing_dependency' when a variable points at a deleted column,
    'math_error' when a dry run (every variable = 1, every function = identity)
    fails or yields a non-finite number.
    """
    if column.get("isAuto") is not True or context is None:
        return None

    variable_map = column.get("variableMap") or {}
    if not isinstance(variable_map, dict):
        variable_map = {}

    for ref in variable_map.values():
        ref_id = ref.get("id") if isinstance(ref, dict) else None
        if ref_id == PLAYER_COUNT_ID:
            continue
        if not isinstance(ref_id, str) or context.find_column(ref_id) is None:
            return "missing_dependency"

    formula = column.get("formula") or ""
    mock_vars = {name: 1 for name in variable_map}
    func_names = set(build_functions(column)) | set(extract_identifiers(formula)["funcs"])
    mock_funcs = {name: (lambda x: x) for name in func_names}
    try:
        result = evaluate_strict(formula, mock_vars, mock_funcs)
    except FormulaError:
        return "math_error"
    if not math.isfinite(result):
        return "math_error"
    return None


def calculate_player_total(
    player: dict[str, Any],
    template: dict[str, Any],
    all_players: list[dict[str, Any]] | None = None,
) -> float:
    """Sum of the player's scoring columns plus any manual bonus."""
    columns = [c for c in template.get("columns") or [] if isinstance(c, dict)]
    scores = player.get("scores") or {}
    context = ScoringContext(all_columns=columns, player_scores=scores, all_players=all_players)

    total: float = 0
    for col in columns:
        if not col.get("isScoring"):
            continue
        total += calculate_column_score(col, score_parts(scores.get(col.get("id"))), context)

    bonus = player.get("bonusScore")
    if _is_number(bonus):
        total += bonus
    return total


def resolve_select_option(column: dict[str, Any], score_value: Any) -> dict[str, Any] | None:
    """The quick action a clicker column's stored value was entered with, if any."""
    actions = [a for a in column.get("quickActions") or [] if isinstance(a, dict)]
    if not actions or not isinstance(score_value, dict):
        return None
    option_id = score_value.get("optionId")
    if option_id:
        for action in actions:
            if action.get("id") == option_id:
                return action
    parts = score_parts(score_value)
    if not parts:
        return None
    value = _to_number(parts[0])
    for action in actions:
        if action.get("value") == value:
            return action
    return None
