"""
Request models for the REST API.

Bodies use the same camelCase keys as workflow snapshots; snake_case is
accepted too.
"""
from typing import Any, Optional

from pydantic import Field

from workflow_core.models import (
    BranchHandle,
    NodeType,
    OptionalHandle,
    Position,
    TriggerThrottleConfig,
    WorkflowModel,
)
from workflow_core.restructure import DropPosition


class NewWorkflowRequest(WorkflowModel):
    name: str = "Untitled Workflow"


class CreateNodeRequest(WorkflowModel):
    """Request to create a new node."""
    type: NodeType = NodeType.ACTIVITY
    position: Position = Field(default_factory=Position)
    data: dict[str, Any] = Field(default_factory=dict)
    # Insert into the tree after this node instead of adding it unconnected
    after_node_id: Optional[str] = None


class UpdateNodeRequest(WorkflowModel):
    """Partial update of a node's data; only the given keys change."""
    data: dict[str, Any] = Field(default_factory=dict)
    position: Optional[Position] = None


class CreateConnectionRequest(WorkflowModel):
    source_id: str
    target_id: str
    source_handle: OptionalHandle = None


class DeleteConnectionRequest(WorkflowModel):
    source_id: Optional[str] = None
    target_id: Optional[str] = None
    connection_id: Optional[str] = None


class MoveNodeRequest(WorkflowModel):
    """Drag-and-drop instruction from the tree view."""
    dragged_node_id: str
    target_node_id: str
    position: DropPosition
    branch_type: Optional[BranchHandle] = None


class AddTriggerRequest(WorkflowModel):
    item_type: str
    trigger_event: str
    throttle: Optional[TriggerThrottleConfig] = None


class UpdateThrottleRequest(WorkflowModel):
    throttle: Optional[TriggerThrottleConfig] = None


class ReorderTriggersRequest(WorkflowModel):
    ordered_ids: list[str]
