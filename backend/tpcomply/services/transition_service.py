"""
Transition Service — binds the workflow engine to persisted records.

Order of checks for a status change:
  1. role has UPDATE on the entity's resource      (permission matrix)
  2. record is visible to the caller                (access filter)
  3. edge exists / role allowed / conditions met    (workflow engine)
  4. status written, then audit entry appended      (engine callbacks)

Everything runs inside the caller's session; a failure raises and the
request's unit of work rolls back, so status and audit move together.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tpcomply.auth.context import RequestContext
from tpcomply.auth.errors import NotFound, WorkflowError
from tpcomply.auth.permissions import PermissionAction, Resource
from tpcomply.auth.scoping import ResourceKind
from tpcomply.models import Document, Engagement
from tpcomply.services.audit_service import AuditService
from tpcomply.workflow.engine import TransitionRequest, WorkflowEngine, WorkflowHistory
from tpcomply.workflow.statuses import WorkflowEntityType

logger = logging.getLogger(__name__)


# Workflow entities that are persisted here, with their resource and model
_PERSISTED = {
    WorkflowEntityType.ENGAGEMENT: (Resource.ENGAGEMENTS, ResourceKind.ENGAGEMENT, Engagement),
    WorkflowEntityType.DOCUMENT: (Resource.DOCUMENTS, ResourceKind.DOCUMENT, Document),
}


@dataclass(frozen=True)
class TransitionOutcome:
    entity_type: WorkflowEntityType
    entity_id: str
    previous_status: str
    status: str
    requires_approval: bool
    progress: int


class TransitionService:
    def __init__(self, session: AsyncSession, engine: WorkflowEngine):
        self.session = session
        self.engine = engine
        self.audit = AuditService(session)

    async def _load(self, ctx: RequestContext, entity_type: WorkflowEntityType, entity_id: str):
        _, kind, model = _PERSISTED[entity_type]
        query = select(model).where(model.id == entity_id, ctx.access_filter(kind).clause())
        if model is Engagement:
            query = query.options(selectinload(Engagement.client))
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        if record is None:
            # Invisible and missing look the same to the caller
            raise NotFound(f"{entity_type.value.capitalize()} {entity_id} not found")
        return record

    async def transition(
        self,
        ctx: RequestContext,
        entity_type: WorkflowEntityType | str,
        entity_id: str,
        target_status: str,
        comment: str | None = None,
        metadata: dict | None = None,
    ) -> TransitionOutcome:
        try:
            et = WorkflowEntityType(entity_type)
        except ValueError:
            raise NotFound(f"Unknown workflow entity type {entity_type}") from None
        if et not in _PERSISTED:
            raise NotFound(f"{et.value} records are not stored by this service")

        resource, _, _ = _PERSISTED[et]
        ctx.require_permission(resource, PermissionAction.UPDATE)

        record = await self._load(ctx, et, entity_id)
        previous_status = record.status

        request = TransitionRequest(
            entity_type=et,
            entity_id=record.id,
            current_status=previous_status,
            target_status=target_status,
            user_id=ctx.user.id,
            user_role=ctx.role,
            firm_id=ctx.firm_id,
            comment=comment,
            metadata=metadata or {},
        )

        async def apply_update(_entity_id: str, new_status: str) -> None:
            record.status = new_status
            await self.session.flush()

        async def append_audit(history: WorkflowHistory) -> None:
            await self.audit.log_status_change(history, actor=ctx.actor)

        result = await self.engine.execute_transition(request, apply_update, append_audit)
        if not result.success:
            raise WorkflowError(result.error_kind, result.error)

        if result.requires_approval:
            await self.audit.log_approval_requested(
                firm_id=ctx.firm_id,
                entity_type=et.value,
                entity_id=record.id,
                from_status=previous_status,
                to_status=target_status,
                actor=ctx.actor,
            )

        return TransitionOutcome(
            entity_type=et,
            entity_id=record.id,
            previous_status=previous_status,
            status=result.new_status,
            requires_approval=result.requires_approval,
            progress=self.engine.calculate_progress(et, result.new_status),
        )
