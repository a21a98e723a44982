"""
Workflow validation - Check workflow graphs for structural issues.

Validation is a pure function over a snapshot of nodes and connections. It
never raises: a structurally nonsensical graph (dangling endpoints, missing
start node, half-configured nodes) still yields a complete report.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from .analysis import find_cycles
from .models import (
    NO_VALUE_OPERATORS,
    ActivityNode,
    BaseNode,
    BranchHandle,
    ConditionNode,
    Connection,
    DelayNode,
    NodeType,
    StartNode,
)


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Blocks a valid workflow, must be fixed
    WARNING = "warning"  # Informational, does not block


class FixType(str, Enum):
    """Corrections the auto-fixer can apply without user input."""
    ADD_DEFAULT_ROUTE = "add_default_route"
    ADD_PLACEHOLDER_ACTION = "add_placeholder_action"


@dataclass
class ValidationIssue:
    """A single validation issue found in a workflow."""
    severity: IssueSeverity
    message: str
    node_id: Optional[str] = None
    route_id: Optional[str] = None
    connection_id: Optional[str] = None
    fixable: bool = False
    fix_type: Optional[FixType] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.node_id:
            result["nodeId"] = self.node_id
        if self.route_id:
            result["routeId"] = self.route_id
        if self.connection_id:
            result["connectionId"] = self.connection_id
        if self.fixable:
            result["fixable"] = True
            result["fixType"] = self.fix_type.value if self.fix_type else None
        return result


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings]

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
        }


class _Collector:
    """Accumulates issues into the error and warning lists."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(self, message: str, **kwargs) -> None:
        self.errors.append(ValidationIssue(IssueSeverity.ERROR, message, **kwargs))

    def warning(self, message: str, **kwargs) -> None:
        self.warnings.append(ValidationIssue(IssueSeverity.WARNING, message, **kwargs))


def reachable(
    roots: Iterable[str],
    connections: Sequence[Connection],
    direction: str = "forward",
) -> set[str]:
    """
    BFS over connections from `roots`.

    direction="forward" follows edges source -> target,
    direction="backward" follows them target -> source.
    """
    adjacency: dict[str, list[str]] = {}
    for conn in connections:
        if direction == "forward":
            adjacency.setdefault(conn.source_id, []).append(conn.target_id)
        else:
            adjacency.setdefault(conn.target_id, []).append(conn.source_id)

    visited: set[str] = set()
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for nxt in adjacency.get(current, []):
            if nxt not in visited:
                queue.append(nxt)
    return visited


def validate_workflow(nodes: Sequence[BaseNode], connections: Sequence[Connection]) -> ValidationResult:
    """
    Validate a workflow snapshot and return errors and warnings.

    Checks, in order:
    1. Exactly one start node, with every trigger event configured and
       unique non-negative trigger seq values - ERROR
    2. At least one end node - ERROR
    3. Nodes (except start) without an incoming connection - WARNING
    4. Nodes (except end) without an outgoing connection - WARNING
    5. Nodes not reachable from start / not leading to an end - WARNING
    6. Activity routes and actions - ERROR / WARNING (some fixable)
    7. Condition configuration and yes/no branches - ERROR / WARNING
    8. Delay duration and unit - ERROR
    9. Connections referencing missing nodes - WARNING
    10. Condition branch handles used more than once or missing - ERROR / WARNING
    11. Cycles (a node that is its own ancestor) - ERROR

    Args:
        nodes: Nodes of the workflow
        connections: Connections of the workflow

    Returns:
        ValidationResult; `is_valid` is False only when errors are present
    """
    issues = _Collector()
    node_ids = {n.id for n in nodes}

    # 1. Start node and its triggers
    start_nodes = [n for n in nodes if n.type == NodeType.START]
    start = start_nodes[0] if start_nodes else None
    if start is None:
        issues.error("Workflow must have a start node")
    else:
        for extra in start_nodes[1:]:
            issues.error("Workflow must have exactly one start node", node_id=extra.id)
        _validate_start_node(start, issues)

    # 2. End node
    end_nodes = [n for n in nodes if n.type == NodeType.END]
    if not end_nodes:
        issues.error("Workflow must have an end node")

    # 3 & 4. Dangling ends
    targets = {c.target_id for c in connections}
    sources = {c.source_id for c in connections}
    for node in nodes:
        if node.type != NodeType.START and node.id not in targets:
            issues.warning(f'"{node.label}" has no incoming connection', node_id=node.id)
        if node.type != NodeType.END and node.id not in sources:
            issues.warning(f'"{node.label}" has no outgoing connection', node_id=node.id)

    # 5. Reachability (both passes always run)
    if start is not None and end_nodes:
        from_start = reachable([start.id], connections, "forward")
        to_end = reachable([e.id for e in end_nodes], connections, "backward")
        for node in nodes:
            if node.type in (NodeType.START, NodeType.END):
                continue
            if node.id not in from_start:
                issues.warning(f'"{node.label}" is not reachable from start', node_id=node.id)
            if node.id not in to_end:
                issues.warning(f'"{node.label}" does not lead to end', node_id=node.id)

    # 6-8. Per-type configuration
    nodes_by_id = {n.id: n for n in nodes}
    for node in nodes:
        if node.type == NodeType.ACTIVITY:
            _validate_activity_node(node, nodes_by_id, issues)
        elif node.type == NodeType.CONDITION:
            _validate_condition_node(node, connections, issues)
        elif node.type == NodeType.DELAY:
            _validate_delay_node(node, issues)

    # 9. Dangling connection endpoints
    for conn in connections:
        missing = [nid for nid in (conn.source_id, conn.target_id) if nid not in node_ids]
        if missing:
            issues.warning(
                f"Connection {conn.id} references a missing node: {', '.join(missing)}",
                connection_id=conn.id,
            )

    # 10. Condition branch handles
    for node in nodes:
        if node.type == NodeType.CONDITION:
            _validate_condition_handles(node, connections, issues)

    # 11. Cycles among existing nodes
    internal = [c for c in connections if c.source_id in node_ids and c.target_id in node_ids]
    for cycle in find_cycles(internal):
        labels = " -> ".join(nodes_by_id[nid].label for nid in cycle)
        issues.error(f"Workflow contains a cycle: {labels}", node_id=cycle[0])

    return ValidationResult(
        is_valid=not issues.errors,
        errors=issues.errors,
        warnings=issues.warnings,
    )


def _validate_start_node(node: StartNode, issues: _Collector) -> None:
    data = node.data
    if data.trigger_events:
        seqs = [e.seq for e in data.trigger_events]
        if len(set(seqs)) != len(seqs) or min(seqs) < 0:
            issues.error(
                "Trigger events on the start node must have unique non-negative seq values",
                node_id=node.id,
            )
        for event in sorted(data.trigger_events, key=lambda e: e.seq):
            if not event.is_configured:
                issues.error(
                    f"Trigger event {event.seq + 1} on the start node is missing an item type or event",
                    node_id=node.id,
                )
    elif not data.item_type or not data.trigger_event:
        # Legacy single-trigger start node
        issues.error("Start node must have a trigger configured", node_id=node.id)


def _validate_activity_node(
    node: ActivityNode,
    nodes_by_id: dict[str, BaseNode],
    issues: _Collector,
) -> None:
    label = node.label
    routes = node.data.routes

    for route in routes:
        if not route.target_activity_id:
            issues.error(
                f'Route in "{label}" has no target activity selected',
                node_id=node.id, route_id=route.id,
            )
        else:
            target = nodes_by_id.get(route.target_activity_id)
            if target is None or target.type != NodeType.ACTIVITY:
                issues.error(
                    f'Route in "{label}" points to non-existent activity',
                    node_id=node.id, route_id=route.id,
                )

        if route.is_default:
            continue

        condition = route.condition
        if condition is None:
            issues.warning(
                f'Non-default route in "{label}" has no condition configured',
                node_id=node.id, route_id=route.id,
            )
            continue

        if not condition.field:
            issues.error(
                f'Condition in "{label}" is missing a field',
                node_id=node.id, route_id=route.id,
            )
        if condition.operator is None:
            issues.error(
                f'Condition in "{label}" is missing an operator',
                node_id=node.id, route_id=route.id,
            )
        if (
            condition.operator is not None
            and condition.operator not in NO_VALUE_OPERATORS
            and not condition.value
        ):
            issues.error(
                f'Condition in "{label}" is missing a value',
                node_id=node.id, route_id=route.id,
            )

    if routes and not any(r.is_default for r in routes):
        issues.warning(
            f'Activity "{label}" has routes but no default route',
            node_id=node.id,
            fixable=True,
            fix_type=FixType.ADD_DEFAULT_ROUTE,
        )

    if not node.data.actions:
        issues.warning(
            f'Activity "{label}" has no actions defined',
            node_id=node.id,
            fixable=True,
            fix_type=FixType.ADD_PLACEHOLDER_ACTION,
        )


def _validate_condition_node(
    node: ConditionNode,
    connections: Sequence[Connection],
    issues: _Collector,
) -> None:
    label = node.label
    if not node.data.condition_field:
        issues.error(f'Condition "{label}" has no field configured', node_id=node.id)
    if node.data.condition_operator is None:
        issues.error(f'Condition "{label}" has no operator configured', node_id=node.id)

    handles = {c.source_handle for c in connections if c.source_id == node.id}
    if BranchHandle.YES not in handles:
        issues.warning(f'Condition "{label}" has no "Yes" branch connected', node_id=node.id)
    if BranchHandle.NO not in handles:
        issues.warning(f'Condition "{label}" has no "No" branch connected', node_id=node.id)


def _validate_delay_node(node: DelayNode, issues: _Collector) -> None:
    label = node.label
    amount = node.data.delay_amount
    if amount is None or amount <= 0:
        issues.error(f'Delay "{label}" has no valid duration set', node_id=node.id)
    if node.data.delay_unit is None:
        issues.error(f'Delay "{label}" has no time unit selected', node_id=node.id)


def _validate_condition_handles(
    node: ConditionNode,
    connections: Sequence[Connection],
    issues: _Collector,
) -> None:
    outgoing = [c for c in connections if c.source_id == node.id]
    for handle in BranchHandle:
        on_handle = [c for c in outgoing if c.source_handle == handle]
        if len(on_handle) > 1:
            issues.error(
                f'Condition "{node.label}" has more than one "{handle.value.title()}" branch',
                node_id=node.id,
            )
    for conn in outgoing:
        if conn.source_handle is None:
            issues.warning(
                f'Condition "{node.label}" has a connection without a yes/no branch',
                node_id=node.id, connection_id=conn.id,
            )


def count_fixable_issues(result: ValidationResult) -> int:
    """Number of issues the auto-fixer can apply."""
    return sum(1 for issue in result.issues if issue.fixable)


def validation_summary(result: ValidationResult) -> dict:
    """
    Create a summary of validation issues.

    Args:
        result: Result of validate_workflow

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(result.errors) + len(result.warnings),
        "errors": len(result.errors),
        "warnings": len(result.warnings),
        "fixable": count_fixable_issues(result),
        "valid": result.is_valid,
    }
