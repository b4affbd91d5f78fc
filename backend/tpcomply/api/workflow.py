"""Query allowed transitions and move engagements and documents."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tpcomply.api.deps import get_db, get_request_context, get_workflow_engine
from tpcomply.auth.context import RequestContext
from tpcomply.auth.errors import NotFound
from tpcomply.schemas.schemas import (
    AllowedTransitionsResponse,
    TransitionBody,
    TransitionResponse,
)
from tpcomply.services.transition_service import TransitionService
from tpcomply.workflow.engine import WorkflowEngine
from tpcomply.workflow.statuses import WorkflowEntityType

router = APIRouter(prefix="/api/workflow", tags=["workflow"])


def _entity_type(value: str) -> WorkflowEntityType:
    try:
        return WorkflowEntityType(value.upper())
    except ValueError:
        raise NotFound(f"Unknown workflow entity type {value}") from None


@router.get("/transitions", response_model=AllowedTransitionsResponse)
async def allowed_transitions(
    entity_type: str = Query(..., description="ENGAGEMENT, DOCUMENT, TASK or PROJECT"),
    current_status: str = Query(...),
    ctx: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Targets the caller's role could move an entity to from `current_status`."""
    et = _entity_type(entity_type)
    return AllowedTransitionsResponse(
        entity_type=et.value,
        current_status=current_status,
        allowed=engine.get_allowed_transitions(et, current_status, ctx.role),
        progress=engine.calculate_progress(et, current_status),
        is_terminal=engine.is_terminal_status(et, current_status),
    )


@router.get("/definitions/{entity_type}")
async def workflow_definition(
    entity_type: str,
    ctx: RequestContext = Depends(get_request_context),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    et = _entity_type(entity_type)
    definition = engine.get_workflow_definition(et)
    definition["progression"] = engine.get_status_progression(et)
    return definition


@router.post("/transition", response_model=TransitionResponse)
async def transition(
    body: TransitionBody,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """
    Move an engagement or document to `target_status`.

    A non-approver requesting an approval-gated move gets 200 with
    requires_approval=true and the status unchanged.
    """
    et = _entity_type(body.entity_type)
    outcome = await TransitionService(db, engine).transition(
        ctx,
        et,
        body.entity_id,
        body.target_status,
        comment=body.comment,
        metadata=body.metadata,
    )
    return TransitionResponse(
        entity_type=outcome.entity_type.value,
        entity_id=outcome.entity_id,
        previous_status=outcome.previous_status,
        status=outcome.status,
        requires_approval=outcome.requires_approval,
        progress=outcome.progress,
    )
