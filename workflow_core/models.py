"""
Core data models for automation workflows.

These models define the canonical schema for a workflow definition:
- Nodes (start, end, activity, condition, delay) as a tagged union on `type`
- Connections between nodes, optionally tagged with a branch handle
- Trigger events, actions, routes and throttle policies carried by nodes

Field Naming Convention:
- Python attributes are snake_case
- JSON serialization uses the editor's camelCase keys (sourceId, isDefault, ...)
- Either spelling is accepted on input
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
import uuid

from pydantic import BeforeValidator, BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .actions import ActionConfig, parse_action_config


class NodeType(str, Enum):
    """Kinds of vertices in a workflow graph."""
    START = "start"
    END = "end"
    ACTIVITY = "activity"
    CONDITION = "condition"
    DELAY = "delay"


class BranchHandle(str, Enum):
    """Handles on edges leaving a condition node. Absent (None) is the default handle."""
    YES = "yes"
    NO = "no"


class DelayUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class ThrottleScope(str, Enum):
    """Window after which a trigger's execution counter resets."""
    SESSION = "session"
    DAY = "day"
    WEEK = "week"
    LIFETIME = "lifetime"
    NONE = "none"


class ThrottleTarget(str, Enum):
    """Identity a trigger's execution counter is keyed by."""
    BROWSER = "browser"
    USER = "user"
    BOTH = "both"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


# Operators that never consult the condition's value operand
NO_VALUE_OPERATORS = frozenset({ConditionOperator.IS_EMPTY, ConditionOperator.IS_NOT_EMPTY})


class ConditionLogic(str, Enum):
    ALL = "all"  # AND
    ANY = "any"  # OR


class ActionCategory(str, Enum):
    COMMUNICATION = "communication"
    TASK_MANAGEMENT = "task_management"
    DATA_MANAGEMENT = "data_management"
    FORMS = "forms"
    INTEGRATIONS = "integrations"
    PAYMENTS = "payments"


def _short_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return _short_id("n")


def generate_connection_id() -> str:
    """Generate a unique connection ID."""
    return _short_id("c")


def generate_route_id() -> str:
    return _short_id("route_")


def generate_action_id() -> str:
    return _short_id("action_")


def generate_trigger_id() -> str:
    return _short_id("event_")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


# Half-edited snapshots carry "" for unset enum fields
OptionalOperator = Annotated[Optional[ConditionOperator], BeforeValidator(_blank_to_none)]
OptionalHandle = Annotated[Optional[BranchHandle], BeforeValidator(_blank_to_none)]
OptionalDelayUnit = Annotated[Optional[DelayUnit], BeforeValidator(_blank_to_none)]


class WorkflowModel(BaseModel):
    """Base model: camelCase aliases on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Position(WorkflowModel):
    """Canvas position of a node. Layout only; never read by graph algorithms."""
    x: float = 0
    y: float = 0


# --- Triggers ---

class TriggerThrottleConfig(WorkflowModel):
    """Execution-frequency policy for a trigger event (see workflow_core.throttle)."""
    enabled: bool = False
    scope: ThrottleScope = ThrottleScope.NONE
    target: ThrottleTarget = ThrottleTarget.BROWSER
    max_executions: Optional[int] = Field(default=None, ge=1)
    cooldown_minutes: Optional[float] = Field(default=None, ge=0)
    version: Optional[int] = None      # Bump to invalidate cached execution records
    reset_at: Optional[float] = None   # Epoch milliseconds; records older than this are ignored

    @property
    def is_unthrottled(self) -> bool:
        return not self.enabled or self.scope == ThrottleScope.NONE

    @property
    def effective_max_executions(self) -> int:
        return self.max_executions or 1


class TriggerEventConfig(WorkflowModel):
    """An (item type, event) pair that starts the workflow."""
    id: str = Field(default_factory=generate_trigger_id)
    item_type: str = ""
    trigger_event: str = ""
    seq: int = Field(default=0, ge=0)
    backend_id: Optional[int] = None
    throttle: Optional[TriggerThrottleConfig] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.item_type) and bool(self.trigger_event)


# --- Actions & routes ---

class ActionCondition(WorkflowModel):
    id: str = Field(default_factory=lambda: _short_id("cond_"))
    field: str = ""
    operator: OptionalOperator = None
    value: str = ""


class ActionConditionalLogic(WorkflowModel):
    enabled: bool = False
    logic: ConditionLogic = ConditionLogic.ALL
    conditions: list[ActionCondition] = Field(default_factory=list)


class ActionItem(WorkflowModel):
    """A single step executed by an activity."""
    id: str = Field(default_factory=generate_action_id)
    type: str
    label: str = ""
    category: ActionCategory = ActionCategory.TASK_MANAGEMENT
    config: dict[str, Any] = Field(default_factory=dict)
    conditional_logic: Optional[ActionConditionalLogic] = None

    def typed_config(self) -> ActionConfig:
        """Configuration parsed into the model registered for this action type."""
        return parse_action_config(self.type, self.config)


class RouteCondition(WorkflowModel):
    field: str = ""
    operator: OptionalOperator = None
    value: str = ""


class ActivityRoute(WorkflowModel):
    """A conditional (or default) hop from one activity to the next."""
    id: str = Field(default_factory=generate_route_id)
    target_activity_id: str = ""
    condition: Optional[RouteCondition] = None
    is_default: bool = False


# --- Node payloads ---

class NodeData(WorkflowModel):
    label: str = ""
    description: Optional[str] = None


class StartNodeData(NodeData):
    label: str = "Start"
    trigger_events: list[TriggerEventConfig] = Field(default_factory=list)
    # Legacy single-trigger fields; mirror the first trigger event
    trigger_type: Optional[str] = None
    item_type: Optional[str] = None
    trigger_event: Optional[str] = None

    def set_trigger_events(self, events: list[TriggerEventConfig]) -> None:
        """Replace the trigger list, keeping the legacy fields in sync with the first event."""
        self.trigger_events = list(events)
        primary = self.trigger_events[0] if self.trigger_events else None
        self.item_type = primary.item_type if primary else ""
        self.trigger_event = primary.trigger_event if primary else ""


class EndNodeData(NodeData):
    label: str = "End"


class ActivityNodeData(NodeData):
    label: str = "New Activity"
    actions: list[ActionItem] = Field(default_factory=list)
    routes: list[ActivityRoute] = Field(default_factory=list)
    activity_id: Optional[Union[int, str]] = None  # Opaque external reference

    @model_validator(mode="before")
    @classmethod
    def null_lists_to_empty(cls, data: Any) -> Any:
        """Snapshots stripped for transport carry actions/routes as null."""
        if isinstance(data, dict):
            for key in ("actions", "routes"):
                if key in data and data[key] is None:
                    data = {**data, key: []}
        return data


class ConditionNodeData(NodeData):
    label: str = "Condition"
    condition_field: Optional[str] = None
    condition_operator: OptionalOperator = None
    condition_value: Optional[str] = None


class DelayNodeData(NodeData):
    label: str = "Delay"
    delay_amount: Optional[int] = None
    delay_unit: OptionalDelayUnit = None


# --- Nodes ---

class BaseNode(WorkflowModel):
    id: str = Field(default_factory=generate_node_id)
    position: Position = Field(default_factory=Position)

    @field_validator("id", mode="before")
    @classmethod
    def generate_missing_id(cls, value: Any) -> Any:
        return value or generate_node_id()

    @property
    def label(self) -> str:
        return self.data.label


class StartNode(BaseNode):
    type: Literal["start"] = "start"
    data: StartNodeData = Field(default_factory=StartNodeData)


class EndNode(BaseNode):
    type: Literal["end"] = "end"
    data: EndNodeData = Field(default_factory=EndNodeData)


class ActivityNode(BaseNode):
    type: Literal["activity"] = "activity"
    data: ActivityNodeData = Field(default_factory=ActivityNodeData)


class ConditionNode(BaseNode):
    type: Literal["condition"] = "condition"
    data: ConditionNodeData = Field(default_factory=ConditionNodeData)


class DelayNode(BaseNode):
    type: Literal["delay"] = "delay"
    data: DelayNodeData = Field(default_factory=DelayNodeData)


WorkflowNode = Annotated[
    Union[StartNode, EndNode, ActivityNode, ConditionNode, DelayNode],
    Field(discriminator="type"),
]

_node_adapter: TypeAdapter = TypeAdapter(WorkflowNode)

NODE_CLASSES: dict[NodeType, type[BaseNode]] = {
    NodeType.START: StartNode,
    NodeType.END: EndNode,
    NodeType.ACTIVITY: ActivityNode,
    NodeType.CONDITION: ConditionNode,
    NodeType.DELAY: DelayNode,
}


def parse_node(data: dict[str, Any]) -> BaseNode:
    """Build the node class selected by the `type` key of a raw dict."""
    return _node_adapter.validate_python(data)


# --- Connections ---

class Connection(WorkflowModel):
    """A directed edge. `source_handle` is set only on edges leaving a condition node."""
    id: str = Field(default_factory=generate_connection_id)
    source_id: str
    target_id: str
    source_handle: OptionalHandle = None
    target_handle: Optional[str] = None

    def same_link(self, source_id: str, target_id: str, source_handle: Optional[BranchHandle]) -> bool:
        """True if this connection is the (source, target, handle) triple given."""
        return (
            self.source_id == source_id
            and self.target_id == target_id
            and self.source_handle == source_handle
        )


# --- Workflow document ---

class Workflow(WorkflowModel):
    """
    The complete workflow definition.
    This is what gets saved to/loaded from the persistence store.
    """
    id: Optional[str] = None  # Assigned by the store on first save
    name: str = "Untitled Workflow"
    description: str = ""
    is_active: bool = True
    nodes: list[WorkflowNode] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def create_default(cls, name: str = "Untitled Workflow") -> "Workflow":
        """A new workflow with a start node linked to an end node."""
        start = StartNode(position=Position(x=250, y=50))
        end = EndNode(position=Position(x=250, y=400))
        return cls(
            name=name,
            nodes=[start, end],
            connections=[Connection(source_id=start.id, target_id=end.id)],
        )

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with the editor's field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "Workflow":
        """Create a Workflow from a JSON dict (handles the legacy item_info envelope)."""
        data = dict(data)
        item_info = data.pop("item_info", None) or data.pop("itemInfo", None)
        if isinstance(item_info, dict):
            data.setdefault("nodes", item_info.get("nodes", []))
            data.setdefault("connections", item_info.get("connections", []))
        if "title" in data and "name" not in data:
            data["name"] = data.pop("title")
        if "Is_disabled" in data and "isActive" not in data:
            data["isActive"] = not data.pop("Is_disabled")
        return cls.model_validate(data)

    def get_node(self, node_id: str) -> Optional[BaseNode]:
        """Get a node by ID (O(n) - use GraphStore for repeated lookups)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def start_node(self) -> Optional[StartNode]:
        return next((n for n in self.nodes if n.type == NodeType.START), None)

    def end_nodes(self) -> list[EndNode]:
        return [n for n in self.nodes if n.type == NodeType.END]
