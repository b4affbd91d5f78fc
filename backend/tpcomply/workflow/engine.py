"""
Validates and executes workflow status transitions.

The engine holds no state beyond the definitions it was built with. All
side effects go through the two callbacks handed to execute_transition:

    apply_update(entity_id, new_status)   persist the new status
    append_audit(history)                 record the WorkflowHistory

They are awaited once each, update first. If the update fails the audit
callback is never called; the result reports failure either way.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from tpcomply.auth.errors import ErrorKind
from tpcomply.auth.roles import Role, coerce_role
from tpcomply.workflow.statuses import WorkflowEntityType
from tpcomply.workflow.transitions import Transition, WorkflowDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRequest:
    entity_type: WorkflowEntityType | str
    entity_id: str
    current_status: str
    target_status: str
    user_id: str
    user_role: Role | str
    firm_id: str
    comment: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionCheck:
    allowed: bool
    reason: str | None = None
    error_kind: ErrorKind | None = None


@dataclass(frozen=True)
class TransitionResult:
    success: bool
    new_status: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    requires_approval: bool = False


@dataclass(frozen=True)
class WorkflowHistory:
    """One executed transition. Written once, never updated."""

    entity_type: WorkflowEntityType
    entity_id: str
    from_status: str
    to_status: str
    transitioned_by: str
    transitioned_at: datetime
    firm_id: str
    comment: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


ApplyUpdate = Callable[[str, str], Awaitable[None]]
AppendAudit = Callable[[WorkflowHistory], Awaitable[None]]


def _entity_type(value: WorkflowEntityType | str) -> WorkflowEntityType | None:
    try:
        return WorkflowEntityType(value)
    except ValueError:
        return None


class WorkflowEngine:
    """Per-entity-type state machines built from declarative definitions."""

    def __init__(self, definitions: Iterable[WorkflowDefinition]):
        table: dict[WorkflowEntityType, WorkflowDefinition] = {}
        for definition in definitions:
            if definition.entity_type in table:
                raise ValueError(f"Duplicate workflow for {definition.entity_type.value}")
            table[definition.entity_type] = definition
        self._definitions = MappingProxyType(table)

    def _definition(self, entity_type: WorkflowEntityType | str) -> WorkflowDefinition | None:
        et = _entity_type(entity_type)
        return self._definitions.get(et) if et is not None else None

    # ── Queries ──────────────────────────────────────────────────────────

    def get_allowed_transitions(
        self,
        entity_type: WorkflowEntityType | str,
        current_status: str,
        role: Role | str,
    ) -> list[str]:
        definition = self._definition(entity_type)
        r = coerce_role(role)
        if definition is None or r is None:
            return []
        return [t.to_status for t in definition.outgoing(current_status) if t.permits(r)]

    def can_transition(self, request: TransitionRequest) -> TransitionCheck:
        check, _ = self._validate(request)
        return check

    def _validate(self, request: TransitionRequest) -> tuple[TransitionCheck, Transition | None]:
        definition = self._definition(request.entity_type)
        if definition is None:
            return TransitionCheck(
                False, "Unknown entity type", ErrorKind.INVALID_TRANSITION
            ), None

        transition = definition.find(request.current_status, request.target_status)
        if transition is None:
            return TransitionCheck(
                False,
                f"Invalid transition from {request.current_status} to {request.target_status}",
                ErrorKind.INVALID_TRANSITION,
            ), None

        role = coerce_role(request.user_role)
        if role is None or not transition.permits(role):
            return TransitionCheck(
                False,
                f"Role {request.user_role} is not allowed to make this transition",
                ErrorKind.TRANSITION_NOT_ALLOWED_FOR_ROLE,
            ), None

        for condition in transition.conditions:
            if not condition.evaluate(request.metadata):
                return TransitionCheck(
                    False,
                    f"Condition not met: {condition.describe()}",
                    ErrorKind.CONDITION_NOT_MET,
                ), None

        return TransitionCheck(True), transition

    def is_terminal_status(self, entity_type: WorkflowEntityType | str, status: str) -> bool:
        definition = self._definition(entity_type)
        if definition is None:
            return True
        return not definition.outgoing(status)

    def get_status_progression(self, entity_type: WorkflowEntityType | str) -> list[str]:
        definition = self._definition(entity_type)
        return list(definition.progression) if definition is not None else []

    def calculate_progress(self, entity_type: WorkflowEntityType | str, current_status: str) -> int:
        """Percentage (0-100) of `current_status` along the display progression."""
        progression = self.get_status_progression(entity_type)
        if current_status not in progression:
            return 0
        index = progression.index(current_status)
        if index == len(progression) - 1:
            return 100
        # Halves round up: 12.5 -> 13
        return math.floor(index * 100 / (len(progression) - 1) + 0.5)

    def get_workflow_definition(self, entity_type: WorkflowEntityType | str) -> dict[str, Any]:
        definition = self._definition(entity_type)
        if definition is None:
            return {"statuses": [], "transitions": []}
        return {
            "statuses": definition.status_values(),
            "transitions": [
                {
                    "from": t.from_status,
                    "to": t.to_status,
                    "allowed_roles": sorted(r.value for r in t.allowed_roles),
                    "requires_approval": t.requires_approval,
                    "approver_roles": sorted(r.value for r in t.approver_roles),
                    "conditions": [c.describe() for c in t.conditions],
                }
                for t in definition.transitions
            ],
        }

    # ── Execution ────────────────────────────────────────────────────────

    async def execute_transition(
        self,
        request: TransitionRequest,
        apply_update: ApplyUpdate,
        append_audit: AppendAudit,
    ) -> TransitionResult:
        check, transition = self._validate(request)
        if not check.allowed:
            return TransitionResult(
                success=False, error=check.reason, error_kind=check.error_kind
            )

        if transition.requires_approval and not transition.is_approver(coerce_role(request.user_role)):
            logger.info(
                "Transition %s %s %s -> %s by %s awaits approval",
                request.entity_type, request.entity_id,
                request.current_status, request.target_status, request.user_role,
            )
            return TransitionResult(
                success=True,
                new_status=request.current_status,
                requires_approval=True,
            )

        try:
            await apply_update(request.entity_id, request.target_status)
        except Exception as e:
            logger.exception(
                "Status update failed for %s %s (%s -> %s)",
                request.entity_type, request.entity_id,
                request.current_status, request.target_status,
            )
            return TransitionResult(
                success=False,
                new_status=request.current_status,
                error=str(e) or "Status update failed",
                error_kind=ErrorKind.RESOLUTION_FAILURE,
            )

        history = WorkflowHistory(
            entity_type=WorkflowEntityType(request.entity_type),
            entity_id=request.entity_id,
            from_status=request.current_status,
            to_status=request.target_status,
            transitioned_by=request.user_id,
            transitioned_at=datetime.now(timezone.utc),
            firm_id=request.firm_id,
            comment=request.comment,
            metadata=dict(request.metadata),
        )
        try:
            await append_audit(history)
        except Exception as e:
            # The caller's unit of work must roll the update back
            logger.exception(
                "Audit append failed for %s %s (%s -> %s)",
                request.entity_type, request.entity_id,
                request.current_status, request.target_status,
            )
            return TransitionResult(
                success=False,
                new_status=request.current_status,
                error=str(e) or "Audit append failed",
                error_kind=ErrorKind.RESOLUTION_FAILURE,
            )

        logger.info(
            "Transitioned %s %s %s -> %s by %s",
            history.entity_type.value, request.entity_id,
            request.current_status, request.target_status, request.user_id,
        )
        return TransitionResult(success=True, new_status=request.target_status)
