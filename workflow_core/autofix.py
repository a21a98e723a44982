"""
Auto-fixer - applies the fixable subset of a validation result.

Every fix re-checks the node at fix time, so duplicate issues and repeated
runs never apply the same correction twice.
"""

from dataclasses import dataclass
from typing import Sequence
import logging

from .models import (
    ActionCategory,
    ActionItem,
    ActivityRoute,
    BaseNode,
    Connection,
    NodeType,
    generate_action_id,
    generate_route_id,
)
from .validation import FixType, ValidationResult

logger = logging.getLogger(__name__)

PLACEHOLDER_ACTION_TYPE = "add_note"
PLACEHOLDER_ACTION_LABEL = "Add Note (placeholder)"


@dataclass
class AutoFixResult:
    nodes: list[BaseNode]
    connections: list[Connection]
    fixed_count: int


def placeholder_action() -> ActionItem:
    """A neutral action that only marks the activity as needing configuration."""
    return ActionItem(
        id=generate_action_id(),
        type=PLACEHOLDER_ACTION_TYPE,
        label=PLACEHOLDER_ACTION_LABEL,
        category=ActionCategory.TASK_MANAGEMENT,
        config={"note": "Configure this action"},
    )


def apply_auto_fixes(
    nodes: Sequence[BaseNode],
    connections: Sequence[Connection],
    validation_result: ValidationResult,
) -> AutoFixResult:
    """
    Apply every fixable issue that names a node.

    The input snapshot is not mutated: fixed nodes are copies. `fixed_count`
    counts mutations actually applied, not matched issues.

    Args:
        nodes: Workflow nodes the result was computed from
        connections: Workflow connections (returned unchanged)
        validation_result: Output of validate_workflow

    Returns:
        AutoFixResult with the corrected nodes
    """
    updated: dict[str, BaseNode] = {n.id: n for n in nodes}
    copied: set[str] = set()
    end_node = next((n for n in nodes if n.type == NodeType.END), None)
    fixed_count = 0

    def editable(node_id: str) -> BaseNode | None:
        node = updated.get(node_id)
        if node is None or node.type != NodeType.ACTIVITY:
            return None
        if node_id not in copied:
            node = node.model_copy(deep=True)
            updated[node_id] = node
            copied.add(node_id)
        return node

    fixable = [i for i in validation_result.issues if i.fixable and i.node_id]
    for issue in fixable:
        if issue.fix_type == FixType.ADD_DEFAULT_ROUTE:
            node = editable(issue.node_id)
            if node is None or any(r.is_default for r in node.data.routes):
                continue
            node.data.routes.append(ActivityRoute(
                id=generate_route_id(),
                target_activity_id=end_node.id if end_node else "",
                is_default=True,
            ))
            fixed_count += 1
            logger.info("Added default route to activity %s", node.id)

        elif issue.fix_type == FixType.ADD_PLACEHOLDER_ACTION:
            node = editable(issue.node_id)
            if node is None or node.data.actions:
                continue
            node.data.actions.append(placeholder_action())
            fixed_count += 1
            logger.info("Added placeholder action to activity %s", node.id)

    return AutoFixResult(
        nodes=list(updated.values()),
        connections=list(connections),
        fixed_count=fixed_count,
    )
