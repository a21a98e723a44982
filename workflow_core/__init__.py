"""
Workflow Core - Graph model, validation, auto-fixes and tree restructuring.

This package provides the definition-side logic of the automation builder,
shared by the editing backend and any executor, ensuring a single source of
truth for what a valid workflow is.
"""

from .models import (
    # Enums
    NodeType,
    BranchHandle,
    DelayUnit,
    ThrottleScope,
    ThrottleTarget,
    ConditionOperator,
    ConditionLogic,
    ActionCategory,
    # Core models
    Position,
    TriggerThrottleConfig,
    TriggerEventConfig,
    ActionCondition,
    ActionConditionalLogic,
    ActionItem,
    RouteCondition,
    ActivityRoute,
    StartNodeData,
    EndNodeData,
    ActivityNodeData,
    ConditionNodeData,
    DelayNodeData,
    BaseNode,
    StartNode,
    EndNode,
    ActivityNode,
    ConditionNode,
    DelayNode,
    WorkflowNode,
    Connection,
    Workflow,
    parse_node,
)

from .errors import (
    WorkflowError,
    NodeNotFoundError,
    DuplicateNodeError,
    ProtectedNodeError,
    DuplicateTriggerError,
    TriggerNotFoundError,
    ConditionEvaluationError,
)
from .graph import GraphStore
from .validation import (
    validate_workflow,
    validation_summary,
    count_fixable_issues,
    ValidationIssue,
    ValidationResult,
    IssueSeverity,
    FixType,
)
from .autofix import apply_auto_fixes, AutoFixResult
from .restructure import relocate_node, DropInstruction, DropPosition, RestructureResult
from .conditions import evaluate_condition, evaluate_conditional_logic, select_route
from .analysis import summarize_workflow, find_cycles

__all__ = [
    # Enums
    "NodeType",
    "BranchHandle",
    "DelayUnit",
    "ThrottleScope",
    "ThrottleTarget",
    "ConditionOperator",
    "ConditionLogic",
    "ActionCategory",
    # Models
    "Position",
    "TriggerThrottleConfig",
    "TriggerEventConfig",
    "ActionCondition",
    "ActionConditionalLogic",
    "ActionItem",
    "RouteCondition",
    "ActivityRoute",
    "StartNodeData",
    "EndNodeData",
    "ActivityNodeData",
    "ConditionNodeData",
    "DelayNodeData",
    "BaseNode",
    "StartNode",
    "EndNode",
    "ActivityNode",
    "ConditionNode",
    "DelayNode",
    "WorkflowNode",
    "Connection",
    "Workflow",
    "parse_node",
    # Errors
    "WorkflowError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "ProtectedNodeError",
    "DuplicateTriggerError",
    "TriggerNotFoundError",
    "ConditionEvaluationError",
    # Graph
    "GraphStore",
    # Validation
    "validate_workflow",
    "validation_summary",
    "count_fixable_issues",
    "ValidationIssue",
    "ValidationResult",
    "IssueSeverity",
    "FixType",
    # Auto-fix
    "apply_auto_fixes",
    "AutoFixResult",
    # Restructuring
    "relocate_node",
    "DropInstruction",
    "DropPosition",
    "RestructureResult",
    # Conditions
    "evaluate_condition",
    "evaluate_conditional_logic",
    "select_route",
    # Analysis
    "summarize_workflow",
    "find_cycles",
]
