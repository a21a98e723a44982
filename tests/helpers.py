"""Builders for small workflow graphs used across the test suite."""

from typing import Optional

from workflow_core.models import (
    ActionItem,
    ActivityNode,
    ActivityNodeData,
    ActivityRoute,
    BranchHandle,
    ConditionNode,
    ConditionNodeData,
    ConditionOperator,
    Connection,
    DelayNode,
    DelayNodeData,
    DelayUnit,
    EndNode,
    RouteCondition,
    StartNode,
    StartNodeData,
    TriggerEventConfig,
)


def start(node_id: str = "start", item_type: str = "event", trigger_event: str = "view") -> StartNode:
    events = [TriggerEventConfig(item_type=item_type, trigger_event=trigger_event)]
    return StartNode(id=node_id, data=StartNodeData(trigger_events=events))


def end(node_id: str = "end") -> EndNode:
    return EndNode(id=node_id)


def action(action_type: str = "send_email", **config) -> ActionItem:
    return ActionItem(type=action_type, label=action_type, config=config)


def activity(
    node_id: str,
    label: Optional[str] = None,
    actions: Optional[list[ActionItem]] = None,
    routes: Optional[list[ActivityRoute]] = None,
) -> ActivityNode:
    return ActivityNode(
        id=node_id,
        data=ActivityNodeData(
            label=label or node_id,
            actions=[action()] if actions is None else actions,
            routes=routes or [],
        ),
    )


def condition(
    node_id: str,
    field: Optional[str] = "plan",
    operator: Optional[ConditionOperator] = ConditionOperator.EQUALS,
    value: Optional[str] = "pro",
) -> ConditionNode:
    return ConditionNode(
        id=node_id,
        data=ConditionNodeData(
            label=node_id,
            condition_field=field,
            condition_operator=operator,
            condition_value=value,
        ),
    )


def delay(node_id: str, amount: Optional[int] = 1, unit: Optional[DelayUnit] = DelayUnit.HOURS) -> DelayNode:
    return DelayNode(id=node_id, data=DelayNodeData(label=node_id, delay_amount=amount, delay_unit=unit))


def route(
    target: str,
    is_default: bool = False,
    field: str = "plan",
    operator: Optional[ConditionOperator] = ConditionOperator.EQUALS,
    value: str = "pro",
    with_condition: bool = True,
) -> ActivityRoute:
    cond = RouteCondition(field=field, operator=operator, value=value) if with_condition else None
    return ActivityRoute(target_activity_id=target, is_default=is_default, condition=None if is_default else cond)


def link(source: str, target: str, handle: Optional[BranchHandle] = None, conn_id: Optional[str] = None) -> Connection:
    if conn_id is None:
        conn_id = f"{source}->{target}" + (f":{handle.value}" if handle else "")
    return Connection(id=conn_id, source_id=source, target_id=target, source_handle=handle)


def edges(connections) -> set[tuple]:
    """Connections as comparable (source, target, handle) triples."""
    return {
        (c.source_id, c.target_id, c.source_handle.value if c.source_handle else None)
        for c in connections
    }


def messages(issues) -> list[str]:
    return [i.message for i in issues]
