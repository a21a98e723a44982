"""
Workflow Session - editing state, history, auto-save and persistence.

This module implements:
- Single workflow state management (one workflow open at a time)
- Graph edits through GraphStore and the tree restructurer
- Linear undo/redo history using snapshots
- Debounced auto-save into the persistence store
- Change/save callbacks for real-time sync
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional
import asyncio
import logging
import time

from pydantic.alias_generators import to_camel

from workflow_core.autofix import AutoFixResult, apply_auto_fixes
from workflow_core.errors import ProtectedNodeError, WorkflowError
from workflow_core.graph import GraphStore
from workflow_core.models import (
    ActivityNode,
    BaseNode,
    BranchHandle,
    Connection,
    NodeType,
    Position,
    StartNode,
    TriggerEventConfig,
    TriggerThrottleConfig,
    Workflow,
)
from workflow_core.restructure import DropInstruction, RestructureResult, relocate_node
from workflow_core import triggers
from workflow_core.validation import ValidationResult, validate_workflow

from .autosave import DebouncedSaver
from .persistence import JsonWorkflowStore

logger = logging.getLogger(__name__)


class NoWorkflowOpenError(WorkflowError):
    def __init__(self):
        super().__init__("No workflow open")


def _event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class WorkflowSession:
    """
    Manages a single workflow's editing state, history, and persistence.

    The history system works via snapshots:
    - Each edit records a full snapshot of the workflow before it
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack

    When a store and an auto-save delay are given, every edit made while an
    event loop is running reschedules a debounced save of the full snapshot.
    """

    def __init__(
        self,
        store: Optional[JsonWorkflowStore] = None,
        max_history: int = 100,
        autosave_delay: Optional[float] = None,
    ):
        self._store = store
        self._workflow: Optional[Workflow] = None
        self._workflow_id: Optional[str] = None  # Stored identity, kept across undo/redo and imports
        self._epoch = 0                          # Bumped whenever a different workflow is opened
        self._graph: Optional[GraphStore] = None
        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = max_history
        self._dirty = False
        self._autosave_delay = autosave_delay
        self._autosave: Optional[DebouncedSaver] = None
        self._on_change_callbacks: list[Callable[[], None]] = []
        self._on_save_callbacks: list[Callable[[str], None]] = []
        self._on_save_error_callbacks: list[Callable[[Exception], None]] = []

    # --- Properties ---

    @property
    def workflow(self) -> Optional[Workflow]:
        return self._workflow

    @property
    def graph(self) -> GraphStore:
        self._require_open()
        return self._graph

    @property
    def store(self) -> Optional[JsonWorkflowStore]:
        return self._store

    @property
    def autosave(self) -> Optional[DebouncedSaver]:
        return self._autosave

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    # --- Callbacks ---

    def on_change(self, callback: Callable[[], None]):
        """Register a callback for workflow changes."""
        self._on_change_callbacks.append(callback)

    def on_save(self, callback: Callable[[str], None]):
        """Register a callback receiving the workflow id after each successful save."""
        self._on_save_callbacks.append(callback)

    def on_save_error(self, callback: Callable[[Exception], None]):
        """Register a callback for failed saves (auto-save failures are not retried)."""
        self._on_save_error_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    def _notify_save(self, workflow_id: str):
        for callback in self._on_save_callbacks:
            try:
                callback(workflow_id)
            except Exception:
                logger.exception("Save callback failed")  # never fails the save itself

    def _notify_save_error(self, error: Exception):
        for callback in self._on_save_error_callbacks:
            callback(error)

    # --- Internal state helpers ---

    def _require_open(self) -> Workflow:
        if self._workflow is None:
            raise NoWorkflowOpenError()
        return self._workflow

    def _set_workflow(self, workflow: Optional[Workflow]):
        """Swap the open workflow; any pending auto-save of the previous one is dropped."""
        if self._autosave is not None:
            self._autosave.cancel()
            self._autosave = None

        self._epoch += 1
        self._workflow = workflow
        self._workflow_id = workflow.id if workflow else None
        self._graph = GraphStore(workflow.nodes, workflow.connections) if workflow else None
        if workflow is not None and self._store is not None and self._autosave_delay:
            epoch = self._epoch
            self._autosave = DebouncedSaver(
                lambda snapshot: self._persist(snapshot, epoch),
                delay=self._autosave_delay,
                on_error=self._notify_save_error,
            )

    def _sync_from_graph(self):
        self._workflow.nodes = self._graph.nodes
        self._workflow.connections = self._graph.connections

    def _push_history(self, snapshot: dict):
        self._future.clear()
        self._history.append(snapshot)
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _install(self, workflow: Workflow):
        """Make `workflow` the open content of the current workflow, keeping its stored id."""
        workflow.id = self._workflow_id
        self._workflow = workflow
        self._graph = GraphStore(workflow.nodes, workflow.connections)

    def _restore(self, snapshot: dict):
        self._install(Workflow.from_json_dict(snapshot))

    def _changed(self):
        self._dirty = True
        if self._autosave is not None and _event_loop_running():
            self._autosave.schedule(self._workflow.model_copy(deep=True))
        self._notify_change()

    @contextmanager
    def _edit(self) -> Iterator[GraphStore]:
        """Run a graph edit; history and notifications only happen if it succeeds."""
        workflow = self._require_open()
        snapshot = workflow.to_json_dict()
        yield self._graph
        self._push_history(snapshot)
        self._sync_from_graph()
        self._changed()

    # --- Workflow lifecycle ---

    def new_workflow(self, name: str = "Untitled Workflow") -> Workflow:
        """Create a new workflow with a start and an end node."""
        self._set_workflow(Workflow.create_default(name))
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._notify_change()
        return self._workflow

    def open_workflow(self, workflow_id: str) -> Workflow:
        """Load a saved workflow from the store."""
        if self._store is None:
            raise WorkflowError("No workflow store configured")
        workflow = self._store.load(workflow_id)
        self._set_workflow(workflow)
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._notify_change()
        return workflow

    def replace_workflow(self, workflow: Workflow) -> Workflow:
        """Replace the open workflow's content (JSON import). Undoable."""
        current = self._require_open()
        self._push_history(current.to_json_dict())
        self._install(workflow)
        self._changed()
        return workflow

    def close(self):
        """End the editing session. A pending auto-save is cancelled, not written."""
        self._set_workflow(None)
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._notify_change()

    def save(self) -> str:
        """Save the full snapshot now. Returns the workflow id."""
        workflow = self._require_open()
        if self._store is None:
            raise WorkflowError("No workflow store configured")
        if self._autosave is not None:
            self._autosave.cancel()
        try:
            return self._persist(workflow)
        except WorkflowError as e:
            self._notify_save_error(e)
            raise

    def _persist(self, snapshot: Workflow, epoch: Optional[int] = None) -> str:
        """
        Write a snapshot under the session's stored id, adopting the id on first save.

        An auto-save that was already in flight when a different workflow was
        opened (`epoch` no longer current) is written under its own id and
        leaves the session state alone.
        """
        current = epoch is None or epoch == self._epoch
        workflow_id = self._store.save(self._workflow_id if current else snapshot.id, snapshot)
        if current:
            self._workflow_id = workflow_id
            if self._workflow is not None:
                self._workflow.id = workflow_id
            if self._autosave is None or not self._autosave.has_pending:
                self._dirty = False
        self._notify_save(workflow_id)
        return workflow_id

    async def flush_autosave(self):
        """Write a pending auto-save immediately."""
        if self._autosave is not None:
            await self._autosave.flush()

    # --- Undo/Redo ---

    def undo(self) -> Optional[Workflow]:
        if not self.can_undo or self._workflow is None:
            return None
        self._future.append(self._workflow.to_json_dict())
        self._restore(self._history.pop())
        self._changed()
        return self._workflow

    def redo(self) -> Optional[Workflow]:
        if not self.can_redo or self._workflow is None:
            return None
        self._history.append(self._workflow.to_json_dict())
        self._restore(self._future.pop())
        self._changed()
        return self._workflow

    # --- Node operations ---

    def add_node(self, node: BaseNode) -> BaseNode:
        with self._edit() as graph:
            graph.add_node(node)
        return node

    def insert_activity_after(self, anchor_id: str, node: Optional[BaseNode] = None) -> BaseNode:
        """Insert a node (a blank activity by default) after `anchor_id`."""
        node = node or ActivityNode()
        with self._edit() as graph:
            graph.insert_after(anchor_id, node)
        return node

    def update_node_data(self, node_id: str, changes: dict[str, Any]) -> BaseNode:
        """Merge `changes` (snake_case or camelCase keys) into a node's data."""
        with self._edit() as graph:
            node = graph.require_node(node_id)
            merged = node.data.model_dump(by_alias=True)
            for key, value in changes.items():
                merged[to_camel(key) if "_" in key else key] = value
            node.data = type(node.data).model_validate(merged)
        return node

    def delete_node(self, node_id: str) -> BaseNode:
        """Delete a node, relinking its parent to its children where unambiguous."""
        node = self.graph.require_node(node_id)
        if node.type in (NodeType.START, NodeType.END):
            raise ProtectedNodeError(f"{node.type.title()} nodes cannot be deleted")
        with self._edit() as graph:
            graph.remove_node(node_id)
        return node

    def move_position(self, node_id: str, position: Position) -> BaseNode:
        with self._edit() as graph:
            return graph.move_node(node_id, position)

    def move_in_tree(self, dragged_node_id: str, drop: DropInstruction) -> RestructureResult:
        """Relocate a node in the tree; a rejected move changes nothing."""
        workflow = self._require_open()
        result = relocate_node(workflow.nodes, workflow.connections, dragged_node_id, drop)
        if result.applied:
            with self._edit() as graph:
                graph.replace_connections(result.connections)
        return result

    # --- Connection operations ---

    def connect(
        self,
        source_id: str,
        target_id: str,
        source_handle: Optional[BranchHandle] = None,
    ) -> Connection:
        with self._edit() as graph:
            return graph.add_connection(source_id, target_id, source_handle)

    def disconnect(
        self,
        source_id: Optional[str] = None,
        target_id: Optional[str] = None,
        connection_id: Optional[str] = None,
    ) -> list[Connection]:
        with self._edit() as graph:
            return graph.remove_connection(source_id, target_id, connection_id)

    # --- Validation ---

    def validate(self) -> ValidationResult:
        workflow = self._require_open()
        return validate_workflow(workflow.nodes, workflow.connections)

    def apply_auto_fixes(self) -> AutoFixResult:
        """Validate, then apply every fixable issue. Records history only if something changed."""
        workflow = self._require_open()
        result = apply_auto_fixes(workflow.nodes, workflow.connections, self.validate())
        if result.fixed_count:
            snapshot = workflow.to_json_dict()
            self._push_history(snapshot)
            self._graph = GraphStore(result.nodes, result.connections)
            self._sync_from_graph()
            self._changed()
        return result

    # --- Trigger events ---

    def _start_node(self) -> StartNode:
        start = self.graph.start_node()
        if start is None:
            raise WorkflowError("Workflow has no start node")
        return start

    def _set_triggers(self, events: list[TriggerEventConfig]) -> list[TriggerEventConfig]:
        start = self._start_node()
        with self._edit():
            start.data.set_trigger_events(events)
        return start.data.trigger_events

    def add_trigger_event(
        self,
        item_type: str,
        trigger_event: str,
        throttle: Optional[TriggerThrottleConfig] = None,
    ) -> list[TriggerEventConfig]:
        events = self._start_node().data.trigger_events
        return self._set_triggers(triggers.add_trigger_event(events, item_type, trigger_event, throttle))

    def remove_trigger_event(self, event_id: str) -> list[TriggerEventConfig]:
        events = self._start_node().data.trigger_events
        return self._set_triggers(triggers.remove_trigger_event(events, event_id))

    def reorder_trigger_events(self, ordered_ids: list[str]) -> list[TriggerEventConfig]:
        events = self._start_node().data.trigger_events
        return self._set_triggers(triggers.reorder_trigger_events(events, ordered_ids))

    def update_trigger_throttle(
        self,
        event_id: str,
        throttle: Optional[TriggerThrottleConfig],
    ) -> list[TriggerEventConfig]:
        events = self._start_node().data.trigger_events
        return self._set_triggers(triggers.update_trigger_throttle(events, event_id, throttle))

    def reset_throttles(self, now_ms: Optional[float] = None) -> list[TriggerEventConfig]:
        """Invalidate cached executions of every throttled trigger. Needs a saved workflow."""
        self._require_open()
        if self._workflow_id is None:
            raise WorkflowError("Save the workflow before resetting throttles")
        if now_ms is None:
            now_ms = time.time() * 1000
        events = self._start_node().data.trigger_events
        return self._set_triggers(triggers.reset_throttles(events, now_ms))

    # --- State ---

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        if self._workflow is None:
            return {
                "workflow": None,
                "isDirty": False,
                "canUndo": False,
                "canRedo": False,
            }
        return {
            "workflow": self._workflow.to_json_dict(),
            "isDirty": self._dirty,
            "canUndo": self.can_undo,
            "canRedo": self.can_redo,
        }
