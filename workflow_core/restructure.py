"""
Tree restructuring - relocate a node when it is dragged in the tree view.

A move detaches the dragged node, heals the gap it leaves behind, then
re-inserts it before, after, or under the drop target. The whole operation
works on a copy of the connection list and is all-or-nothing: a rejected move
returns the original list untouched along with the reason.

Only connections change. Node positions are a layout concern and are never
touched here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence
import logging

from pydantic import Field

from .graph import descendants
from .models import BaseNode, BranchHandle, Connection, OptionalHandle, WorkflowModel

logger = logging.getLogger(__name__)


class DropPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    CHILD = "child"


class DropInstruction(WorkflowModel):
    """Where the dragged node should land, relative to `target_node_id`."""
    target_node_id: str
    position: DropPosition
    branch_type: OptionalHandle = Field(default=None)


@dataclass
class RestructureResult:
    connections: list[Connection]
    applied: bool
    reason: Optional[str] = None


def _link(
    connections: list[Connection],
    source_id: str,
    target_id: str,
    handle: Optional[BranchHandle] = None,
) -> None:
    """Append a connection unless the identical link already exists."""
    if source_id == target_id:
        return
    for conn in connections:
        if conn.same_link(source_id, target_id, handle):
            return
    connections.append(Connection(source_id=source_id, target_id=target_id, source_handle=handle))


def relocate_node(
    nodes: Sequence[BaseNode],
    connections: Sequence[Connection],
    dragged_node_id: str,
    drop: DropInstruction,
) -> RestructureResult:
    """
    Move `dragged_node_id` to the position described by `drop`.

    Steps:
    1. Reject when the target is the dragged node or one of its descendants
    2. Detach the dragged node's parent and child edges
    3. Relink the former parent to each former child (keeping the parent's handle)
    4. Insert before / after / as a child of the target
    5. Return the new connection list

    Args:
        nodes: Workflow nodes (read only)
        connections: Current connections
        dragged_node_id: Node being moved
        drop: Drop target and position

    Returns:
        RestructureResult; on rejection `connections` is the input list itself
    """
    node_ids = {n.id for n in nodes}
    target_id = drop.target_node_id

    def reject(reason: str) -> RestructureResult:
        logger.info("Rejected move of %s to %s %s: %s", dragged_node_id, drop.position.value, target_id, reason)
        return RestructureResult(connections=connections, applied=False, reason=reason)

    if dragged_node_id not in node_ids:
        return reject(f"Node not found: {dragged_node_id}")
    if target_id not in node_ids:
        return reject(f"Target node not found: {target_id}")
    if target_id == dragged_node_id:
        return reject("Cannot move a node relative to itself")

    # 1. Cycle guard
    if target_id in descendants(dragged_node_id, connections):
        return reject("Cannot move a node into its own descendants")

    # 2. Detach
    parent_conn = next((c for c in connections if c.target_id == dragged_node_id), None)
    child_conns = [c for c in connections if c.source_id == dragged_node_id]
    result = [
        c for c in connections
        if c.source_id != dragged_node_id and c.target_id != dragged_node_id
    ]

    # 3. Heal the gap
    if parent_conn is not None and child_conns:
        for child in child_conns:
            _link(result, parent_conn.source_id, child.target_id, parent_conn.source_handle)

    # 4. Insert
    if drop.position == DropPosition.BEFORE:
        target_parent = next((c for c in result if c.target_id == target_id), None)
        if target_parent is not None:
            result.remove(target_parent)
            _link(result, target_parent.source_id, dragged_node_id, target_parent.source_handle)
        _link(result, dragged_node_id, target_id)

    elif drop.position == DropPosition.AFTER:
        target_children = [c for c in result if c.source_id == target_id]
        result = [c for c in result if c.source_id != target_id]
        _link(result, target_id, dragged_node_id)
        for child in target_children:
            _link(result, dragged_node_id, child.target_id)

    else:
        _link(result, target_id, dragged_node_id, drop.branch_type)

    logger.debug(
        "Moved %s %s %s (%d -> %d connections)",
        dragged_node_id, drop.position.value, target_id, len(connections), len(result),
    )
    return RestructureResult(connections=result, applied=True)
