"""Tests for condition evaluation and route selection."""

import pytest

from workflow_core.conditions import (
    evaluate_condition,
    evaluate_conditional_logic,
    evaluate_conditions,
    select_route,
)
from workflow_core.errors import ConditionEvaluationError
from workflow_core.models import (
    ActionCondition,
    ActionConditionalLogic,
    ConditionLogic,
    ConditionOperator,
    RouteCondition,
)

from helpers import route


def cond(field, operator, value=""):
    return ActionCondition(field=field, operator=operator, value=value)


CONTEXT = {"plan": "pro", "email": "ann@example.com", "visits": "12", "note": "", "tags": []}


@pytest.mark.parametrize("condition, expected", [
    (cond("plan", ConditionOperator.EQUALS, "pro"), True),
    (cond("plan", ConditionOperator.EQUALS, "free"), False),
    (cond("plan", ConditionOperator.NOT_EQUALS, "free"), True),
    (cond("email", ConditionOperator.CONTAINS, "@example"), True),
    (cond("email", ConditionOperator.NOT_CONTAINS, "@example"), False),
    (cond("visits", ConditionOperator.GREATER_THAN, "10"), True),
    (cond("visits", ConditionOperator.LESS_THAN, "10"), False),
    (cond("note", ConditionOperator.IS_EMPTY), True),
    (cond("tags", ConditionOperator.IS_EMPTY), True),
    (cond("missing", ConditionOperator.IS_EMPTY), True),
    (cond("plan", ConditionOperator.IS_NOT_EMPTY), True),
    (cond("missing", ConditionOperator.EQUALS, ""), True),
])
def test_operators(condition, expected):
    assert evaluate_condition(condition, CONTEXT) is expected


def test_numeric_comparison_is_not_lexicographic():
    assert evaluate_condition(cond("visits", ConditionOperator.GREATER_THAN, "9"), CONTEXT) is True


def test_non_numeric_comparison_raises():
    with pytest.raises(ConditionEvaluationError):
        evaluate_condition(cond("plan", ConditionOperator.GREATER_THAN, "3"), CONTEXT)


def test_missing_operator_raises():
    with pytest.raises(ConditionEvaluationError):
        evaluate_condition(cond("plan", None, "pro"), CONTEXT)


class TestLogic:
    def test_empty_any_is_false(self):
        assert evaluate_conditions([], ConditionLogic.ANY, CONTEXT) is False

    def test_empty_all_is_true(self):
        assert evaluate_conditions([], ConditionLogic.ALL, CONTEXT) is True

    def test_enabled_logic_with_empty_conditions(self):
        any_logic = ActionConditionalLogic(enabled=True, logic=ConditionLogic.ANY, conditions=[])
        all_logic = ActionConditionalLogic(enabled=True, logic=ConditionLogic.ALL, conditions=[])
        assert evaluate_conditional_logic(any_logic, CONTEXT) is False
        assert evaluate_conditional_logic(all_logic, CONTEXT) is True

    def test_disabled_logic_always_runs(self):
        logic = ActionConditionalLogic(
            enabled=False,
            conditions=[cond("plan", ConditionOperator.EQUALS, "free")],
        )
        assert evaluate_conditional_logic(logic, CONTEXT) is True
        assert evaluate_conditional_logic(None, CONTEXT) is True

    def test_all_short_circuits_on_first_false(self):
        conditions = [
            cond("plan", ConditionOperator.EQUALS, "free"),
            cond("plan", ConditionOperator.GREATER_THAN, "1"),  # would raise
        ]
        assert evaluate_conditions(conditions, ConditionLogic.ALL, CONTEXT) is False

    def test_any_short_circuits_on_first_true(self):
        conditions = [
            cond("plan", ConditionOperator.EQUALS, "pro"),
            cond("plan", ConditionOperator.GREATER_THAN, "1"),  # would raise
        ]
        assert evaluate_conditions(conditions, ConditionLogic.ANY, CONTEXT) is True


class TestSelectRoute:
    def test_first_matching_route_wins(self):
        routes = [
            route("free-path", value="free"),
            route("pro-path", value="pro"),
            route("other-pro-path", value="pro"),
            route("fallback", is_default=True),
        ]
        assert select_route(routes, CONTEXT).target_activity_id == "pro-path"

    def test_falls_back_to_default(self):
        routes = [route("fallback", is_default=True), route("free-path", value="free")]
        assert select_route(routes, CONTEXT).target_activity_id == "fallback"

    def test_route_without_condition_never_matches(self):
        routes = [route("unset", with_condition=False)]
        assert select_route(routes, CONTEXT) is None

    def test_route_condition_model(self):
        condition = RouteCondition(field="plan", operator=ConditionOperator.NOT_EQUALS, value="pro")
        assert evaluate_condition(condition, CONTEXT) is False
