"""
Declarative transition tables for every workflow entity type.

Each table is plain data: a list of directed (from → to) edges gated by the
roles that may take them. Backward edges (rework) are ordinary rows with
their own, usually narrower, role sets.

Approval gating: when `requires_approval` is set, a role in `allowed_roles`
but not in `approver_roles` may request the move, but the status stays put
until an approver repeats it.
"""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tpcomply.auth.roles import Role
from tpcomply.workflow.statuses import (
    DocumentStatus,
    EngagementStatus,
    ProjectStatus,
    TaskStatus,
    WorkflowEntityType,
)


class ConditionOperator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"


_OPERATORS = {
    ConditionOperator.EQUALS: operator.eq,
    ConditionOperator.NOT_EQUALS: operator.ne,
    ConditionOperator.GREATER_THAN: operator.gt,
    ConditionOperator.LESS_THAN: operator.lt,
}


@dataclass(frozen=True)
class TransitionCondition:
    """A guard on a request metadata field, e.g. ``benchmark_count > 0``."""

    field: str
    operator: ConditionOperator
    value: Any

    def evaluate(self, metadata: Mapping[str, Any] | None) -> bool:
        if not metadata or self.field not in metadata:
            return False
        try:
            return bool(_OPERATORS[self.operator](metadata[self.field], self.value))
        except TypeError:
            # Incomparable types (e.g. "3" > 2) fail the guard
            return False

    def describe(self) -> str:
        return f"{self.field} {self.operator.value} {self.value!r}"


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str
    allowed_roles: frozenset[Role]
    requires_approval: bool = False
    approver_roles: frozenset[Role] = frozenset()
    conditions: tuple[TransitionCondition, ...] = ()

    def __post_init__(self):
        if self.requires_approval and not self.approver_roles:
            raise ValueError(
                f"Transition {self.from_status} -> {self.to_status} requires approval "
                f"but names no approver roles"
            )

    def permits(self, role: Role | str) -> bool:
        return role in self.allowed_roles

    def is_approver(self, role: Role | str) -> bool:
        return role in self.approver_roles


@dataclass(frozen=True)
class WorkflowDefinition:
    """Statuses, edges and progress ordering for one entity type."""

    entity_type: WorkflowEntityType
    statuses: type[Enum]
    transitions: tuple[Transition, ...]
    progression: tuple[str, ...]
    _edges: dict[tuple[str, str], Transition] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self):
        known = {s.value for s in self.statuses}
        edges: dict[tuple[str, str], Transition] = {}
        for t in self.transitions:
            for status in (t.from_status, t.to_status):
                if status not in known:
                    raise ValueError(
                        f"{self.entity_type.value} transition references unknown status {status}"
                    )
            key = (t.from_status, t.to_status)
            if key in edges:
                raise ValueError(
                    f"{self.entity_type.value} defines {t.from_status} -> {t.to_status} twice"
                )
            edges[key] = t
        for status in self.progression:
            if status not in known:
                raise ValueError(
                    f"{self.entity_type.value} progression references unknown status {status}"
                )
        object.__setattr__(self, "_edges", edges)

    def find(self, from_status: str, to_status: str) -> Transition | None:
        return self._edges.get((from_status, to_status))

    def outgoing(self, from_status: str) -> list[Transition]:
        return [t for t in self.transitions if t.from_status == from_status]

    def status_values(self) -> list[str]:
        return [s.value for s in self.statuses]


def _roles(*roles: Role) -> frozenset[Role]:
    return frozenset(roles)


def _edge(from_status: Enum, to_status: Enum, roles: frozenset[Role], **kwargs) -> Transition:
    return Transition(from_status.value, to_status.value, roles, **kwargs)


# Common role sets
ADMINS = _roles(Role.PARTNER, Role.ADMIN)
SENIORS = ADMINS | {Role.SENIOR_MANAGER}
MANAGERS = SENIORS | {Role.MANAGER}
PREPARERS = MANAGERS | {Role.ASSOCIATE}
EVERYONE = PREPARERS | {Role.TRAINEE}


E = EngagementStatus
ENGAGEMENT_TRANSITIONS: tuple[Transition, ...] = (
    _edge(E.NOT_STARTED, E.DATA_COLLECTION, PREPARERS),
    # Forward flow
    _edge(E.DATA_COLLECTION, E.SAFE_HARBOUR_CHECK, PREPARERS),
    _edge(E.SAFE_HARBOUR_CHECK, E.BENCHMARKING, MANAGERS),
    _edge(E.BENCHMARKING, E.DOCUMENTATION, MANAGERS),
    _edge(E.DOCUMENTATION, E.REVIEW, MANAGERS),
    _edge(E.REVIEW, E.APPROVED, MANAGERS, requires_approval=True, approver_roles=ADMINS),
    _edge(E.APPROVED, E.FILED, MANAGERS),
    _edge(E.FILED, E.COMPLETED, MANAGERS),
    # Safe harbour not applicable
    _edge(E.DATA_COLLECTION, E.BENCHMARKING, MANAGERS),
    # Rework
    _edge(E.REVIEW, E.DOCUMENTATION, SENIORS),
    _edge(E.DOCUMENTATION, E.BENCHMARKING, SENIORS),
    _edge(E.BENCHMARKING, E.DATA_COLLECTION, SENIORS),
)

D = DocumentStatus
DOCUMENT_TRANSITIONS: tuple[Transition, ...] = (
    _edge(D.DRAFT, D.IN_PROGRESS, EVERYONE),
    _edge(D.IN_PROGRESS, D.PENDING_REVIEW, PREPARERS),
    _edge(D.PENDING_REVIEW, D.REVIEW, MANAGERS),
    _edge(D.REVIEW, D.APPROVED, SENIORS, requires_approval=True, approver_roles=ADMINS),
    _edge(D.APPROVED, D.FILED, MANAGERS),
    # Rework
    _edge(D.REVIEW, D.IN_PROGRESS, MANAGERS),
    _edge(D.PENDING_REVIEW, D.IN_PROGRESS, MANAGERS),
)

T = TaskStatus
TASK_TRANSITIONS: tuple[Transition, ...] = (
    _edge(T.TODO, T.IN_PROGRESS, EVERYONE),
    _edge(T.IN_PROGRESS, T.REVIEW, EVERYONE),
    _edge(T.IN_PROGRESS, T.BLOCKED, EVERYONE),
    _edge(T.BLOCKED, T.IN_PROGRESS, MANAGERS),
    _edge(T.REVIEW, T.DONE, MANAGERS),
    _edge(T.REVIEW, T.IN_PROGRESS, MANAGERS),  # rework
)

P = ProjectStatus
PROJECT_TRANSITIONS: tuple[Transition, ...] = (
    _edge(P.NOT_STARTED, P.IN_PROGRESS, MANAGERS),
    _edge(P.IN_PROGRESS, P.ON_TRACK, MANAGERS),
    _edge(P.IN_PROGRESS, P.AT_RISK, MANAGERS),
    _edge(P.IN_PROGRESS, P.ON_HOLD, SENIORS),
    _edge(P.ON_TRACK, P.AT_RISK, MANAGERS),
    _edge(P.ON_TRACK, P.COMPLETED, SENIORS),
    _edge(P.AT_RISK, P.ON_TRACK, MANAGERS),
    _edge(P.AT_RISK, P.ON_HOLD, SENIORS),
    _edge(P.ON_HOLD, P.IN_PROGRESS, SENIORS),
    _edge(P.ON_HOLD, P.CANCELLED, ADMINS),
    _edge(P.IN_PROGRESS, P.CANCELLED, ADMINS),
)


WORKFLOW_DEFINITIONS: tuple[WorkflowDefinition, ...] = (
    WorkflowDefinition(
        entity_type=WorkflowEntityType.ENGAGEMENT,
        statuses=EngagementStatus,
        transitions=ENGAGEMENT_TRANSITIONS,
        progression=tuple(s.value for s in EngagementStatus),
    ),
    WorkflowDefinition(
        entity_type=WorkflowEntityType.DOCUMENT,
        statuses=DocumentStatus,
        transitions=DOCUMENT_TRANSITIONS,
        progression=tuple(s.value for s in DocumentStatus),
    ),
    WorkflowDefinition(
        entity_type=WorkflowEntityType.TASK,
        statuses=TaskStatus,
        transitions=TASK_TRANSITIONS,
        progression=(T.TODO.value, T.IN_PROGRESS.value, T.REVIEW.value, T.DONE.value),
    ),
    WorkflowDefinition(
        entity_type=WorkflowEntityType.PROJECT,
        statuses=ProjectStatus,
        transitions=PROJECT_TRANSITIONS,
        progression=(P.NOT_STARTED.value, P.IN_PROGRESS.value, P.ON_TRACK.value, P.COMPLETED.value),
    ),
)
