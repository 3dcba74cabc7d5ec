"""Range-based lookup tables ("mapping rules") turned into scoring functions.

A rule is a dict: {"min"?, "max"? (number | "next"), "score", "isLinear"?, "unit"?, "unitScore"?}.
Rules are matched first-to-last. A linear rule scores
    baseline + floor((val - (min - 1)) / unit) * unitScore
where the baseline is the table's score at `min - 1`, computed from the rules
before it (so chained linear rules accumulate).
"""
from __future__ import annotations

import math
from typing import Any, Callable

from scoreboard.src.models import parse_number


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _upper_bound_matches(rules: list[dict[str, Any]], idx: int, val: float) -> bool:
    rule = rules[idx]
    upper = rule.get("max")
    if upper == "next":
        nxt = rules[idx + 1] if idx + 1 < len(rules) else None
        if nxt is not None and _is_number(nxt.get("min")):
            return val < float(nxt["min"])
        return True
    if _is_number(upper):
        return val <= float(upper)
    return True


def _find_rule(rules: list[dict[str, Any]], val: float, limit: int) -> int | None:
    for idx in range(limit):
        rule = rules[idx]
        lower = rule.get("min")
        if _is_number(lower) and val < float(lower):
            continue
        if _upper_bound_matches(rules, idx, val):
            return idx
    return None


def _step_score(rule: dict[str, Any]) -> float:
    unit_score = rule.get("unitScore")
    return unit_score if _is_number(unit_score) else (rule.get("score") or 0)


def _linear_parts(rules: list[dict[str, Any]], idx: int, val: float) -> tuple[float, float, int]:
    rule = rules[idx]
    start = rule.get("min") if _is_number(rule.get("min")) else 0
    prev_end = start - 1
    # Baseline comes from the rules before this one only; this bounds the
    # recursion by the rule count even when a linear rule has no min.
    base = _lookup(rules, prev_end, idx) if idx > 0 else 0
    unit = max(1, rule["unit"]) if _is_number(rule.get("unit")) else 1
    ratio = (val - prev_end) / unit
    increments = math.floor(ratio) if math.isfinite(ratio) else ratio
    return base, _step_score(rule), increments


def _lookup(rules: list[dict[str, Any]], val: float, limit: int) -> float:
    idx = _find_rule(rules, val, limit)
    if idx is None:
        return 0
    rule = rules[idx]
    if rule.get("isLinear"):
        base, step, increments = _linear_parts(rules, idx, val)
        return base + increments * step
    return rule.get("score") or 0


def _clean_rule(rule: dict[str, Any]) -> dict[str, Any]:
    """Copy of a rule with hand-edited numeric text ("5") read as numbers."""
    out = dict(rule)
    out["score"] = parse_number(rule.get("score")) or 0
    for key in ("min", "unit", "unitScore"):
        if key in rule:
            out[key] = parse_number(rule[key])
    if rule.get("max") != "next" and "max" in rule:
        out["max"] = parse_number(rule["max"])
    return out


def _clean_rules(rules: Any) -> list[dict[str, Any]]:
    if not isinstance(rules, list):
        return []
    return [_clean_rule(r) for r in rules if isinstance(r, dict)]


def create_lookup_function(rules: Any) -> Callable[[float], float]:
    """Build `val -> score` for a rule list. Unmatched inputs score 0."""
    table = _clean_rules(rules)

    def lookup(val: float) -> float:
        if not _is_number(val) or math.isnan(val):
            return 0
        return _lookup(table, val, len(table))

    return lookup


def describe_linear_step(rules: Any, val: float) -> tuple[float, float, int] | None:
    """
    Breakdown of a linear match as (baseline, score per step, step count),
    or None when `val` does not land on a linear rule.
    """
    table = _clean_rules(rules)
    idx = _find_rule(table, val, len(table))
    if idx is None or not table[idx].get("isLinear"):
        return None
    return _linear_parts(table, idx, val)
