from tpcomply.workflow.engine import (
    TransitionCheck,
    TransitionRequest,
    TransitionResult,
    WorkflowEngine,
    WorkflowHistory,
)
from tpcomply.workflow.statuses import (
    DocumentStatus,
    EngagementStatus,
    ProjectStatus,
    TaskStatus,
    WorkflowEntityType,
)
from tpcomply.workflow.transitions import (
    WORKFLOW_DEFINITIONS,
    ConditionOperator,
    Transition,
    TransitionCondition,
    WorkflowDefinition,
)

__all__ = [
    "ConditionOperator",
    "DocumentStatus",
    "EngagementStatus",
    "ProjectStatus",
    "TaskStatus",
    "Transition",
    "TransitionCheck",
    "TransitionCondition",
    "TransitionRequest",
    "TransitionResult",
    "WORKFLOW_DEFINITIONS",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowEntityType",
    "WorkflowHistory",
]
