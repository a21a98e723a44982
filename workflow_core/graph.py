"""
GraphStore - in-memory nodes and directed connections.

Nodes are kept in an id-keyed dict (insertion ordered) and connections in a
flat list. Parent/child/descendant relationships are always derived from the
connection list; nothing stores back-references, so removing a node can never
leave a dangling pointer behind.
"""

from collections import deque
from typing import Iterable, Optional
import logging

from .errors import DuplicateNodeError, NodeNotFoundError
from .models import (
    BaseNode,
    BranchHandle,
    Connection,
    NodeType,
    Position,
    generate_node_id,
)

logger = logging.getLogger(__name__)

# Sentinel for "any handle" in child/parent queries (None means the default handle)
ANY_HANDLE = object()


def descendants(node_id: str, connections: Iterable[Connection]) -> set[str]:
    """Transitive closure of `node_id` over outgoing edges (BFS)."""
    adjacency: dict[str, list[str]] = {}
    for conn in connections:
        adjacency.setdefault(conn.source_id, []).append(conn.target_id)

    visited: set[str] = set()
    queue = deque(adjacency.get(node_id, []))
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(n for n in adjacency.get(current, []) if n not in visited)
    return visited


class GraphStore:
    """
    Mutable workflow graph with the editing primitives the editor needs.

    All queries are derived from the connection list on demand:
    - children_of / parent_of / descendants_of
    - incoming / outgoing connections
    """

    def __init__(
        self,
        nodes: Optional[Iterable[BaseNode]] = None,
        connections: Optional[Iterable[Connection]] = None,
    ):
        self._nodes: dict[str, BaseNode] = {}
        self._connections: list[Connection] = list(connections or [])
        for node in nodes or []:
            self._nodes[node.id] = node

    # --- Snapshot access ---

    @property
    def nodes(self) -> list[BaseNode]:
        return list(self._nodes.values())

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections)

    def snapshot(self) -> tuple[list[BaseNode], list[Connection]]:
        """Deep copies of the current nodes and connections."""
        return (
            [n.model_copy(deep=True) for n in self._nodes.values()],
            [c.model_copy(deep=True) for c in self._connections],
        )

    def get_node(self, node_id: str) -> Optional[BaseNode]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> BaseNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes_of_type(self, node_type: NodeType) -> list[BaseNode]:
        return [n for n in self._nodes.values() if n.type == node_type]

    def start_node(self) -> Optional[BaseNode]:
        starts = self.nodes_of_type(NodeType.START)
        return starts[0] if starts else None

    def end_nodes(self) -> list[BaseNode]:
        return self.nodes_of_type(NodeType.END)

    # --- Node mutation ---

    def add_node(self, node: BaseNode) -> BaseNode:
        """Append a node. A node without an id gets a fresh one."""
        if not node.id:
            node.id = generate_node_id()
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._nodes[node.id] = node
        return node

    def remove_node(self, node_id: str) -> BaseNode:
        """
        Remove a node and every connection touching it.

        Linear continuity is preserved: when the node had exactly one inbound
        connection and only default-handle outbound connections, the inbound
        source is relinked to each former child (keeping the inbound handle).
        Branch-handle children are never relinked, and neither are several
        children behind a single branch handle.
        """
        node = self.require_node(node_id)

        inbound = [c for c in self.incoming(node_id) if c.source_id != node_id]
        outbound = [c for c in self.outgoing(node_id) if c.target_id != node_id]
        default_out = [c for c in outbound if c.source_handle is None]
        branch_out = [c for c in outbound if c.source_handle is not None]

        del self._nodes[node_id]
        self._connections = [
            c for c in self._connections
            if c.source_id != node_id and c.target_id != node_id
        ]

        relink = (
            len(inbound) == 1
            and default_out
            and not branch_out
            and not (inbound[0].source_handle is not None and len(default_out) > 1)
        )
        if relink:
            parent = inbound[0]
            for child in default_out:
                if child.target_id == parent.source_id:
                    continue
                if parent.source_id not in self._nodes or child.target_id not in self._nodes:
                    continue  # dangling endpoint
                self.add_connection(parent.source_id, child.target_id, parent.source_handle)
        elif inbound and outbound:
            logger.debug(
                "Removed node %s without relinking (%d inbound, %d default, %d branch children)",
                node_id, len(inbound), len(default_out), len(branch_out),
            )

        return node

    def move_node(self, node_id: str, position: Position) -> BaseNode:
        """Change a node's canvas position. Topology is untouched."""
        node = self.require_node(node_id)
        node.position = position
        return node

    def insert_after(self, anchor_id: str, node: BaseNode) -> BaseNode:
        """
        Add `node` directly after `anchor_id`.

        The anchor's existing children move under the new node, except when the
        anchor is a condition node: its yes/no branches stay where they are.
        """
        anchor = self.require_node(anchor_id)
        self.add_node(node)

        if anchor.type != NodeType.CONDITION:
            children = self.outgoing(anchor_id)
            self._connections = [c for c in self._connections if c.source_id != anchor_id]
            self.add_connection(anchor_id, node.id)
            for child in children:
                self.add_connection(node.id, child.target_id)
        else:
            self.add_connection(anchor_id, node.id)
        return node

    # --- Connection mutation ---

    def add_connection(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[BranchHandle] = None,
    ) -> Connection:
        """Link two nodes. Returns the existing connection if the same link exists."""
        if source_id not in self._nodes:
            raise NodeNotFoundError(source_id)
        if target_id not in self._nodes:
            raise NodeNotFoundError(target_id)
        if source_handle is not None:
            source_handle = BranchHandle(source_handle)

        for conn in self._connections:
            if conn.same_link(source_id, target_id, source_handle):
                return conn

        conn = Connection(source_id=source_id, target_id=target_id, source_handle=source_handle)
        self._connections.append(conn)
        return conn

    def remove_connection(
        self,
        source_id: Optional[str] = None,
        target_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ) -> list[Connection]:
        """
        Remove connections and return them.

        With `connection_id`, only that connection goes. Otherwise every
        connection between `source_id` and `target_id` goes, whatever its handle.
        """
        if connection_id is not None:
            removed = [c for c in self._connections if c.id == connection_id]
        elif source_id is not None and target_id is not None:
            removed = [
                c for c in self._connections
                if c.source_id == source_id and c.target_id == target_id
            ]
        else:
            raise ValueError("Either connection_id or both source_id and target_id must be given")

        removed_ids = {c.id for c in removed}
        self._connections = [c for c in self._connections if c.id not in removed_ids]
        return removed

    def replace_connections(self, connections: Iterable[Connection]) -> None:
        """Commit a connection list produced elsewhere (e.g. by the tree restructurer)."""
        self._connections = list(connections)

    # --- Queries ---

    def outgoing(self, node_id: str, handle=ANY_HANDLE) -> list[Connection]:
        return [
            c for c in self._connections
            if c.source_id == node_id and (handle is ANY_HANDLE or c.source_handle == handle)
        ]

    def incoming(self, node_id: str) -> list[Connection]:
        return [c for c in self._connections if c.target_id == node_id]

    def children_of(self, node_id: str, handle=ANY_HANDLE) -> list[str]:
        """Target ids of `node_id`'s outgoing edges, optionally only on one handle."""
        return [c.target_id for c in self.outgoing(node_id, handle)]

    def parent_connection(self, node_id: str, handle=ANY_HANDLE) -> Optional[Connection]:
        for conn in self._connections:
            if conn.target_id == node_id and (handle is ANY_HANDLE or conn.source_handle == handle):
                return conn
        return None

    def parent_of(self, node_id: str, handle=ANY_HANDLE) -> Optional[str]:
        """Source of the first connection into `node_id` (on `handle`, when given)."""
        conn = self.parent_connection(node_id, handle)
        return conn.source_id if conn else None

    def descendants_of(self, node_id: str) -> set[str]:
        return descendants(node_id, self._connections)
