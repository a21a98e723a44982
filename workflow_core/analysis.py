"""
Workflow analysis - graph analysis and summarization utilities.

Provides analysis functions used by the backend to describe a workflow's
structure.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from .models import Connection, NodeType

if TYPE_CHECKING:
    from .models import Workflow


@dataclass
class WorkflowSummary:
    """Structural summary of a workflow."""
    name: str
    total_nodes: int
    total_connections: int
    nodes_by_type: dict[str, int]
    trigger_count: int
    action_count: int
    route_count: int
    orphan_count: int
    has_cycles: bool

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "totalNodes": self.total_nodes,
            "totalConnections": self.total_connections,
            "nodesByType": self.nodes_by_type,
            "triggerCount": self.trigger_count,
            "actionCount": self.action_count,
            "routeCount": self.route_count,
            "orphanCount": self.orphan_count,
            "hasCycles": self.has_cycles,
        }


def find_cycles(connections: Sequence[Connection]) -> list[list[str]]:
    """
    Find the cycles closed by back edges of a depth-first walk.

    Each cycle is reported once, as a list of node IDs that starts and ends
    with the same node. This is enough to tell whether a workflow loops and
    where; it does not enumerate every elementary cycle.
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for conn in connections:
        adjacency[conn.source_id].append(conn.target_id)

    finished: set[str] = set()
    cycles: list[list[str]] = []
    seen: set[frozenset[str]] = set()

    for root in list(adjacency):
        if root in finished:
            continue
        path = [root]
        on_path = {root}
        pending = [iter(adjacency[root])]
        while pending:
            neighbor = next(pending[-1], None)
            if neighbor is None:
                node_id = path.pop()
                on_path.discard(node_id)
                finished.add(node_id)
                pending.pop()
            elif neighbor in on_path:
                cycle = path[path.index(neighbor):] + [neighbor]
                key = frozenset(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
            elif neighbor not in finished:
                path.append(neighbor)
                on_path.add(neighbor)
                pending.append(iter(adjacency[neighbor]))

    return cycles


def summarize_workflow(workflow: "Workflow") -> WorkflowSummary:
    """
    Generate a summary of a workflow.

    Args:
        workflow: The workflow to summarize

    Returns:
        WorkflowSummary with counts and cycle detection
    """
    type_counts: dict[str, int] = defaultdict(int)
    trigger_count = action_count = route_count = 0
    for node in workflow.nodes:
        type_counts[node.type] += 1
        if node.type == NodeType.START:
            trigger_count += len(node.data.trigger_events)
        elif node.type == NodeType.ACTIVITY:
            action_count += len(node.data.actions)
            route_count += len(node.data.routes)

    connected: set[str] = set()
    for conn in workflow.connections:
        connected.add(conn.source_id)
        connected.add(conn.target_id)
    orphan_count = sum(1 for n in workflow.nodes if n.id not in connected)

    return WorkflowSummary(
        name=workflow.name,
        total_nodes=len(workflow.nodes),
        total_connections=len(workflow.connections),
        nodes_by_type=dict(type_counts),
        trigger_count=trigger_count,
        action_count=action_count,
        route_count=route_count,
        orphan_count=orphan_count,
        has_cycles=bool(find_cycles(workflow.connections)),
    )
