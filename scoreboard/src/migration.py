"""
Normalization of historical template/score shapes into the current model.

Older saves described a column with `type` / `calculationType` / `weight` /
`mappingRules` / `quickButtons`; current columns carry a `formula`
("a1", "a1×c1", "a1×a2", "a1+next", "f1(a1)" or a free expression), an
`inputType`, and lookup tables under `f1` / `functions`. Scores were stored as
bare numbers, booleans, or `{value, history, factors}` objects; they are now
always `{"parts": [...]}`.

Every function here is total: unreadable fields are dropped or defaulted.
Running a migration on already-migrated data is a no-op apart from the
`unitScore` backfill, which is itself idempotent.
"""
from __future__ import annotations

import logging
from typing import Any

from scoreboard.src.models import (
    FORMULA_CONSTANT,
    FORMULA_IDENTITY,
    FORMULA_LOOKUP,
    FORMULA_PRODUCT,
    FORMULA_SUM_PARTS,
    ID_LENGTH_SHORT,
    generate_id,
    parse_number,
)

logger = logging.getLogger(__name__)

_BOOLEAN_OPTION_LABELS = ("YES", "NO")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _backfill_unit_score(rules: Any) -> Any:
    if not isinstance(rules, list):
        return rules
    out = []
    for rule in rules:
        if isinstance(rule, dict) and rule.get("isLinear") and rule.get("unitScore") is None:
            rule = {**rule, "unitScore": rule.get("score")}
        out.append(rule)
    return out


def _backfill_functions(functions: Any) -> dict[str, Any] | None:
    if not isinstance(functions, dict):
        return None
    return {name: _backfill_unit_score(rules) for name, rules in functions.items() if isinstance(rules, list)}


def _quick_action(label: Any, value: Any, color: Any = None) -> dict[str, Any]:
    action: dict[str, Any] = {
        "id": generate_id(ID_LENGTH_SHORT),
        "label": label,
        "value": value,
        "isModifier": False,
    }
    if color is not None:
        action["color"] = color
    return action


def _options_to_actions(old_col: dict[str, Any]) -> list[dict[str, Any]]:
    options = old_col.get("options")
    if not isinstance(options, list):
        if old_col.get("type") == "boolean":
            weight = old_col.get("weight")
            options = [
                {"label": _BOOLEAN_OPTION_LABELS[0], "value": weight if weight is not None else 1},
                {"label": _BOOLEAN_OPTION_LABELS[1], "value": 0},
            ]
        else:
            options = []
    return [
        _quick_action(opt.get("label"), opt.get("value"), opt.get("color"))
        for opt in options
        if isinstance(opt, dict)
    ]


def _button_label(value: Any) -> str:
    if _is_number(value) and value > 0:
        return f"+{value}"
    return str(value)


def migrate_column(old_col: Any) -> dict[str, Any]:
    if not isinstance(old_col, dict):
        logger.debug("Dropping non-object column: %r", old_col)
        old_col = {}

    formula = old_col.get("formula") or FORMULA_IDENTITY
    constants = old_col.get("constants")
    f1 = old_col.get("f1")
    quick_actions = old_col.get("quickActions")
    input_type = old_col.get("inputType") or "keypad"

    if not old_col.get("formula") or not old_col.get("inputType"):
        legacy_type = old_col.get("type")
        calculation = old_col.get("calculationType")
        mapping_rules = old_col.get("mappingRules")

        if legacy_type in ("select", "boolean"):
            input_type = "clicker"
            formula = FORMULA_IDENTITY
            quick_actions = _options_to_actions(old_col)
        elif calculation == "sum-parts":
            formula = FORMULA_SUM_PARTS
            if isinstance(quick_actions, list) and quick_actions:
                input_type = "clicker"
        elif calculation == "product":
            formula = FORMULA_PRODUCT
        elif isinstance(mapping_rules, list) and mapping_rules:
            formula = FORMULA_LOOKUP
            f1 = mapping_rules
        else:
            weight = old_col.get("weight")
            if weight is not None and weight != 1:
                formula = FORMULA_CONSTANT
                constants = {"c1": weight}
            quick_buttons = old_col.get("quickButtons")
            if not old_col.get("inputType") and isinstance(quick_buttons, list) and quick_buttons:
                input_type = "clicker"
                formula = FORMULA_SUM_PARTS
                quick_actions = [
                    {"id": generate_id(ID_LENGTH_SHORT), "label": _button_label(v), "value": v}
                    for v in quick_buttons
                ]

    return {
        "id": old_col.get("id"),
        "name": old_col.get("name"),
        "color": old_col.get("color"),
        "isScoring": True if old_col.get("isScoring") is None else old_col["isScoring"],
        "formula": formula,
        "constants": constants,
        "f1": _backfill_unit_score(f1),
        "functions": _backfill_functions(old_col.get("functions")),
        "inputType": input_type,
        "quickActions": quick_actions,
        "unit": old_col.get("unit"),
        "subUnits": old_col.get("subUnits"),
        "rounding": old_col.get("rounding") or "none",
        "showPartsInGrid": old_col.get("showPartsInGrid"),
        "renderMode": old_col.get("renderMode"),
        "buttonGridColumns": old_col.get("buttonGridColumns"),
        "displayMode": old_col.get("displayMode") or "row",
        "visuals": old_col.get("visuals"),
        "contentLayout": old_col.get("contentLayout"),
        "isAuto": old_col.get("isAuto"),
        "variableMap": old_col.get("variableMap"),
    }


def migrate_template(template: Any) -> Any:
    if not isinstance(template, dict) or not template.get("columns"):
        return template
    columns = template["columns"] if isinstance(template["columns"], list) else []
    return {
        **template,
        "bggId": template.get("bggId") or "",
        "supportedColors": template.get("supportedColors") or [],
        "hasImage": bool(template.get("hasImage")),
        "columns": [migrate_column(c) for c in columns],
        "updatedAt": template.get("updatedAt") or template.get("createdAt"),
    }


def _numbers(values: Any) -> list[float]:
    if not isinstance(values, list):
        return []
    out = []
    for v in values:
        num = parse_number(v)
        if num is not None:
            out.append(num)
    return out


def _legacy_parts(old_score: Any, formula: str) -> list[float]:
    if "+next" in formula:
        return _numbers(old_score.get("history")) if isinstance(old_score, dict) else []

    if formula == FORMULA_PRODUCT:
        return _numbers(old_score.get("factors")) if isinstance(old_score, dict) else []

    if isinstance(old_score, dict):
        raw = old_score.get("value")
    elif isinstance(old_score, bool):
        raw = 1 if old_score else 0
    elif _is_number(old_score):
        raw = old_score
    else:
        return []
    num = parse_number(raw) if raw is not None else None
    return [] if num is None else [num]


def migrate_scores(scores: Any, template: dict[str, Any]) -> dict[str, dict[str, Any]]:
    if not isinstance(scores, dict):
        return {}
    columns = {
        c.get("id"): c for c in (template.get("columns") or []) if isinstance(c, dict)
    }
    out: dict[str, dict[str, Any]] = {}
    for col_id, old_score in scores.items():
        col = columns.get(col_id)
        if col is None or old_score is None:
            continue
        if isinstance(old_score, dict) and isinstance(old_score.get("parts"), list):
            out[col_id] = old_score
            continue
        out[col_id] = {"parts": _legacy_parts(old_score, col.get("formula") or "")}
    return out
