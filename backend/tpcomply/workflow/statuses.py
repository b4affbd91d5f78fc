"""Status enums for each workflow-managed entity type."""

from enum import Enum


class WorkflowEntityType(str, Enum):
    ENGAGEMENT = "ENGAGEMENT"
    DOCUMENT = "DOCUMENT"
    TASK = "TASK"
    PROJECT = "PROJECT"


class EngagementStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    DATA_COLLECTION = "DATA_COLLECTION"
    SAFE_HARBOUR_CHECK = "SAFE_HARBOUR_CHECK"
    BENCHMARKING = "BENCHMARKING"
    DOCUMENTATION = "DOCUMENTATION"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    FILED = "FILED"
    COMPLETED = "COMPLETED"


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    FILED = "FILED"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    BLOCKED = "BLOCKED"
    DONE = "DONE"


class ProjectStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    ON_TRACK = "ON_TRACK"
    AT_RISK = "AT_RISK"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
