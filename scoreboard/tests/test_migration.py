import copy

import pytest

from scoreboard.src.migration import migrate_column, migrate_scores, migrate_template


def test_boolean_column_becomes_clicker_with_yes_no_actions():
    col = migrate_column({"id": "c", "name": "Longest road", "type": "boolean", "weight": 3})
    assert col["inputType"] == "clicker"
    assert col["formula"] == "a1"
    assert [a["value"] for a in col["quickActions"]] == [3, 0]
    assert [a["label"] for a in col["quickActions"]] == ["YES", "NO"]
    assert all(len(a["id"]) == 6 for a in col["quickActions"])


def test_select_column_keeps_its_options():
    col = migrate_column({
        "id": "c",
        "type": "select",
        "options": [{"label": "Gold", "value": 5, "color": "#ff0"}, {"label": "Tin", "value": 1}],
    })
    assert col["inputType"] == "clicker"
    assert [(a["label"], a["value"]) for a in col["quickActions"]] == [("Gold", 5), ("Tin", 1)]
    assert col["quickActions"][0]["color"] == "#ff0"
    assert "color" not in col["quickActions"][1]


def test_sum_parts_with_quick_actions_becomes_clicker():
    col = migrate_column({"id": "c", "calculationType": "sum-parts", "quickActions": [{"id": "x", "label": "+1", "value": 1}]})
    assert col["formula"] == "a1+next"
    assert col["inputType"] == "clicker"


def test_sum_parts_without_actions_stays_keypad():
    col = migrate_column({"id": "c", "calculationType": "sum-parts"})
    assert col["formula"] == "a1+next"
    assert col["inputType"] == "keypad"


def test_product_column():
    assert migrate_column({"id": "c", "calculationType": "product"})["formula"] == "a1×a2"


def test_mapping_rules_become_f1():
    rules = [{"max": 0, "score": -1}, {"min": 1, "score": 2}]
    col = migrate_column({"id": "c", "type": "number", "mappingRules": rules})
    assert col["formula"] == "f1(a1)"
    assert col["f1"] == rules


@pytest.mark.parametrize("weight,formula,constants", [(2, "a1×c1", {"c1": 2}), (1, "a1", None), (None, "a1", None)])
def test_weight_becomes_constant(weight, formula, constants):
    col = migrate_column({"id": "c", "type": "number", "weight": weight})
    assert col["formula"] == formula
    assert col["constants"] == constants


def test_quick_buttons_become_sum_parts_clicker():
    col = migrate_column({"id": "c", "type": "number", "quickButtons": [1, 5, -1]})
    assert col["inputType"] == "clicker"
    assert col["formula"] == "a1+next"
    assert [a["label"] for a in col["quickActions"]] == ["+1", "+5", "-1"]
    assert [a["value"] for a in col["quickActions"]] == [1, 5, -1]


def test_current_shape_passes_through_with_unit_score_backfill():
    old = {
        "id": "c",
        "name": "Fields",
        "formula": "f1(x1)+f2(x2)",
        "inputType": "auto",
        "isAuto": True,
        "isScoring": False,
        "rounding": "floor",
        "variableMap": {"x1": {"id": "a", "name": "A"}},
        "f1": [{"min": 1, "score": 2, "isLinear": True}],
        "functions": {
            "f1": [{"min": 1, "score": 2, "isLinear": True}],
            "f2": [{"min": 1, "score": 3, "isLinear": True, "unitScore": 1}, {"max": 0, "score": 0}],
        },
    }
    snapshot = copy.deepcopy(old)
    col = migrate_column(old)

    assert old == snapshot
    assert col["formula"] == "f1(x1)+f2(x2)"
    assert col["isAuto"] is True
    assert col["isScoring"] is False
    assert col["rounding"] == "floor"
    assert col["variableMap"] == old["variableMap"]
    assert col["f1"][0]["unitScore"] == 2
    assert col["functions"]["f1"][0]["unitScore"] == 2
    assert col["functions"]["f2"][0]["unitScore"] == 1
    assert "unitScore" not in col["functions"]["f2"][1]


def test_defaults():
    col = migrate_column({"id": "c", "name": "Plain"})
    assert col["isScoring"] is True
    assert col["rounding"] == "none"
    assert col["displayMode"] == "row"
    assert col["inputType"] == "keypad"


@pytest.mark.parametrize(
    "legacy",
    [
        {"id": "c", "type": "boolean", "weight": 2},
        {"id": "c", "type": "number", "quickButtons": [1, 2]},
        {"id": "c", "type": "number", "mappingRules": [{"min": 0, "score": 1, "isLinear": True}]},
        {"id": "c", "calculationType": "product", "rounding": "ceil"},
    ],
)
def test_migration_is_idempotent(legacy):
    once = migrate_column(legacy)
    assert migrate_column(once) == once


def test_malformed_column_does_not_raise():
    col = migrate_column("garbage")
    assert col["formula"] == "a1"
    assert col["id"] is None


def test_migrate_template_without_columns_is_passthrough():
    template = {"id": "t", "name": "Quick", "columns": []}
    assert migrate_template(template) is template
    assert migrate_template(None) is None


def test_migrate_template_defaults():
    out = migrate_template({"id": "t", "name": "Agricola", "createdAt": 123, "columns": [{"id": "a", "type": "number"}]})
    assert out["bggId"] == ""
    assert out["supportedColors"] == []
    assert out["hasImage"] is False
    assert out["updatedAt"] == 123
    assert out["columns"][0]["formula"] == "a1"


TEMPLATE = {
    "id": "t",
    "columns": [
        {"id": "plain", "formula": "a1"},
        {"id": "sum", "formula": "a1+next"},
        {"id": "prod", "formula": "a1×a2"},
        {"id": "weighted", "formula": "a1×c1"},
    ],
}


def test_migrate_scores_rebuilds_parts():
    out = migrate_scores(
        {
            "plain": {"value": "7", "history": []},
            "sum": {"value": 8, "history": ["5", "oops", "3"]},
            "prod": {"factors": ["2", 3]},
            "weighted": True,
        },
        TEMPLATE,
    )
    assert out == {
        "plain": {"parts": [7]},
        "sum": {"parts": [5, 3]},
        "prod": {"parts": [2, 3]},
        "weighted": {"parts": [1]},
    }


def test_migrate_scores_reads_leading_numbers():
    out = migrate_scores({"sum": {"history": ["5abc", "2.5pts", "x"]}, "plain": {"value": " -3e1 "}}, TEMPLATE)
    assert out == {"sum": {"parts": [5, 2.5]}, "plain": {"parts": [-30]}}


def test_migrate_scores_skips_and_passes_through():
    current = {"parts": [4, 4], "optionId": "x"}
    out = migrate_scores({"plain": current, "deleted": 5, "sum": None, "prod": 4}, TEMPLATE)
    assert out["plain"] is current
    assert "deleted" not in out
    assert "sum" not in out
    assert out["prod"] == {"parts": []}


def test_migrate_scores_scalars():
    out = migrate_scores({"plain": 3.5, "weighted": False}, TEMPLATE)
    assert out == {"plain": {"parts": [3.5]}, "weighted": {"parts": [0]}}
    assert migrate_scores({"plain": "7"}, TEMPLATE) == {"plain": {"parts": []}}
    assert migrate_scores(None, TEMPLATE) == {}
