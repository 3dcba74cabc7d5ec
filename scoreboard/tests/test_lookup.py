import math

import pytest

from scoreboard.src.rules.lookup import create_lookup_function, describe_linear_step

SHEEP_RULES = [
    {"max": 0, "score": -1},
    {"min": 1, "max": 3, "score": 1},
    {"min": 4, "score": 2},
]

STEPPED_RULES = [
    {"max": 3, "score": 1, "isLinear": False},
    {"min": 4, "score": 5, "unit": 2, "isLinear": True},
]

CHAINED_RULES = [
    {"max": 0, "score": 0},
    {"min": 1, "max": 5, "score": 1, "isLinear": True},
    {"min": 6, "score": 3, "unit": 2, "isLinear": True},
]


@pytest.mark.parametrize("val,expected", [(0, -1), (-5, -1), (2, 1), (3, 1), (4, 2), (99, 2)])
def test_fixed_score_intervals(val, expected):
    assert create_lookup_function(SHEEP_RULES)(val) == expected


@pytest.mark.parametrize("val,expected", [(3, 1), (4, 1), (5, 6), (7, 11)])
def test_linear_rule_uses_previous_rule_as_baseline(val, expected):
    assert create_lookup_function(STEPPED_RULES)(val) == expected


@pytest.mark.parametrize("val,expected", [(5, 5), (6, 5), (8, 8), (9, 11)])
def test_chained_linear_rules(val, expected):
    assert create_lookup_function(CHAINED_RULES)(val) == expected


def test_first_rule_linear_has_zero_baseline():
    f = create_lookup_function([{"min": 1, "score": 2, "isLinear": True}])
    assert f(3) == 6


def test_unit_score_overrides_score_for_steps():
    f = create_lookup_function([
        {"max": 2, "score": 0},
        {"min": 3, "score": 99, "unitScore": 2, "isLinear": True},
    ])
    assert f(5) == 6


def test_next_bound_links_to_following_rule():
    f = create_lookup_function([
        {"min": 0, "max": "next", "score": 1},
        {"min": 5, "score": 3},
    ])
    assert f(4) == 1
    assert f(4.5) == 1
    assert f(5) == 3


def test_trailing_next_bound_is_open():
    f = create_lookup_function([{"min": 0, "max": "next", "score": 4}])
    assert f(1000) == 4


def test_unmatched_and_invalid_inputs_score_zero():
    f = create_lookup_function([{"min": 1, "max": 2, "score": 5}])
    assert f(0) == 0
    assert f(3) == 0
    assert f(math.nan) == 0
    assert create_lookup_function(None)(3) == 0
    assert create_lookup_function(["junk", {"min": 1, "score": 2}])(1) == 2


def test_linear_rule_without_min_terminates():
    f = create_lookup_function([
        {"min": 10, "score": 1},
        {"score": 1, "isLinear": True},
    ])
    assert f(3) == 4


def test_numeric_text_in_rules_is_read_as_numbers():
    f = create_lookup_function([
        {"max": 0, "score": 0},
        {"min": "1", "score": "5", "isLinear": True},
    ])
    assert f(2) == 10
    assert create_lookup_function([{"min": 0, "score": "5"}])(3) == 5
    assert create_lookup_function([{"min": 0, "max": "4", "score": "2pts"}])(4) == 2


def test_unreadable_rule_numbers_fall_back():
    f = create_lookup_function([
        {"max": 0, "score": 0},
        {"min": 1, "score": 2, "unitScore": "lots", "isLinear": True},
    ])
    assert f(3) == 6
    assert create_lookup_function([{"min": 0, "score": "many"}])(1) == 0


def test_describe_linear_step():
    assert describe_linear_step(CHAINED_RULES, 9) == (5, 3, 2)
    assert describe_linear_step(SHEEP_RULES, 2) is None
