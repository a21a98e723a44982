"""
Condition evaluation semantics shared by the editor and any executor.

A condition compares the value resolved for its `field` from a flat
variable context against its `value` operand. Conditional logic blocks
combine conditions with `all` (AND) or `any` (OR); an empty list is
vacuously true under `all` and false under `any`.
"""

from typing import Any, Mapping, Optional, Sequence, Union

from .errors import ConditionEvaluationError
from .models import (
    ActionCondition,
    ActionConditionalLogic,
    ActivityRoute,
    ConditionLogic,
    ConditionOperator,
    RouteCondition,
)

Condition = Union[ActionCondition, RouteCondition]


def resolve_field(context: Mapping[str, Any], field: str) -> Any:
    """Look up a variable by name; unknown names resolve to None."""
    return context.get(field)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _as_number(value: Any, field: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConditionEvaluationError(
            f'Cannot compare non-numeric value {value!r} for field "{field}"'
        ) from None


def evaluate_condition(condition: Condition, context: Mapping[str, Any]) -> bool:
    """Evaluate one condition against the resolved value of its field."""
    operator = condition.operator
    if operator is None:
        raise ConditionEvaluationError(f'Condition on "{condition.field}" has no operator')

    resolved = resolve_field(context, condition.field)

    if operator == ConditionOperator.IS_EMPTY:
        return is_empty(resolved)
    if operator == ConditionOperator.IS_NOT_EMPTY:
        return not is_empty(resolved)

    if operator == ConditionOperator.EQUALS:
        return _as_text(resolved) == condition.value
    if operator == ConditionOperator.NOT_EQUALS:
        return _as_text(resolved) != condition.value
    if operator == ConditionOperator.CONTAINS:
        return condition.value in _as_text(resolved)
    if operator == ConditionOperator.NOT_CONTAINS:
        return condition.value not in _as_text(resolved)

    left = _as_number(resolved, condition.field)
    right = _as_number(condition.value, condition.field)
    if operator == ConditionOperator.GREATER_THAN:
        return left > right
    return left < right


def evaluate_conditions(
    conditions: Sequence[Condition],
    logic: ConditionLogic,
    context: Mapping[str, Any],
) -> bool:
    """Combine conditions with short-circuit AND (`all`) or OR (`any`)."""
    results = (evaluate_condition(c, context) for c in conditions)
    if logic == ConditionLogic.ANY:
        return any(results)
    return all(results)


def evaluate_conditional_logic(
    conditional_logic: Optional[ActionConditionalLogic],
    context: Mapping[str, Any],
) -> bool:
    """Whether an action guarded by `conditional_logic` should run. Disabled logic always runs."""
    if conditional_logic is None or not conditional_logic.enabled:
        return True
    return evaluate_conditions(conditional_logic.conditions, conditional_logic.logic, context)


def select_route(routes: Sequence[ActivityRoute], context: Mapping[str, Any]) -> Optional[ActivityRoute]:
    """
    Pick the route an activity follows after its actions ran.

    The first non-default route whose condition matches wins; routes without
    a condition never match. Falls back to the default route, else None.
    """
    for route in routes:
        if route.is_default or route.condition is None:
            continue
        if evaluate_condition(route.condition, context):
            return route
    return next((r for r in routes if r.is_default), None)
