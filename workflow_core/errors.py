"""
Exceptions raised by workflow graph operations.

Validation never raises; these cover explicit edits that cannot be applied.
"""


class WorkflowError(Exception):
    """Base class for workflow editing errors."""


class NodeNotFoundError(WorkflowError):
    """Raised when an operation references a node id that does not exist."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class DuplicateNodeError(WorkflowError):
    """Raised when a node is added with an id already in the graph."""

    def __init__(self, node_id: str):
        super().__init__(f"Node already exists: {node_id}")
        self.node_id = node_id


class ProtectedNodeError(WorkflowError):
    """Raised when deleting a start or end node."""


class DuplicateTriggerError(WorkflowError):
    """Raised when the same (item type, trigger event) pair is added twice."""


class TriggerNotFoundError(WorkflowError):
    """Raised when a trigger event id is not present on the start node."""


class ConditionEvaluationError(WorkflowError, ValueError):
    """Raised when a condition cannot be evaluated (e.g. non-numeric comparison)."""
