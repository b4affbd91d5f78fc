"""
Tenant and ownership filtered reads of clients and engagements.

List endpoints push the access filter into SQL. The single-client endpoint
fetches by id and then applies the same rule in memory, so a record that
would be missing from the list is refused here too.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tpcomply.api.deps import get_db, get_workflow_engine, require
from tpcomply.auth.context import RequestContext
from tpcomply.auth.errors import Forbidden, NotFound
from tpcomply.auth.permissions import PermissionAction, Resource
from tpcomply.auth.scoping import ResourceKind, can_access_record
from tpcomply.models import Client, Engagement
from tpcomply.schemas.schemas import (
    ClientItem,
    ClientListResponse,
    EngagementItem,
    EngagementListResponse,
)
from tpcomply.workflow.engine import WorkflowEngine
from tpcomply.workflow.statuses import WorkflowEntityType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["clients"])


def _pages(total: int, size: int) -> int:
    return (total + size - 1) // size if total > 0 else 1


@router.get("/clients", response_model=ClientListResponse)
async def list_clients(
    status: str | None = Query(None, description="Filter by client status"),
    search: str | None = Query(None, description="Substring match on name or PAN"),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    ctx: RequestContext = Depends(require(Resource.CLIENTS, PermissionAction.READ)),
    db: AsyncSession = Depends(get_db),
):
    """Clients the caller may see, newest first."""
    query = select(Client).where(ctx.access_filter(ResourceKind.CLIENT).clause())
    if status:
        query = query.where(Client.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.where(Client.name.ilike(pattern) | Client.pan.ilike(pattern))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Client.created_at.desc(), Client.id).offset((page - 1) * size).limit(size)
    )

    return ClientListResponse(
        total=total,
        page=page,
        size=size,
        pages=_pages(total, size),
        items=[ClientItem.model_validate(c) for c in result.scalars()],
    )


@router.get("/clients/{client_id}", response_model=ClientItem)
async def get_client(
    client_id: str,
    ctx: RequestContext = Depends(require(Resource.CLIENTS, PermissionAction.READ)),
    db: AsyncSession = Depends(get_db),
):
    client = await db.get(Client, client_id)
    # Other firms' clients are reported as missing
    if client is None or client.firm_id != ctx.firm_id:
        raise NotFound(f"Client {client_id} not found")
    if not can_access_record(ctx.user, client, ResourceKind.CLIENT):
        logger.info(
            "Client %s outside %s's assignments",
            client_id, ctx.actor,
            extra={"firm_id": ctx.firm_id, "user_id": ctx.user.id},
        )
        raise Forbidden("You do not have access to this client")
    return ClientItem.model_validate(client)


@router.get("/engagements", response_model=EngagementListResponse)
async def list_engagements(
    client_id: str | None = Query(None),
    financial_year: str | None = Query(None, description='e.g. "2024-25"'),
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    ctx: RequestContext = Depends(require(Resource.ENGAGEMENTS, PermissionAction.READ)),
    db: AsyncSession = Depends(get_db),
    engine: WorkflowEngine = Depends(get_workflow_engine),
):
    """Engagements whose client the caller may see."""
    query = select(Engagement).where(ctx.access_filter(ResourceKind.ENGAGEMENT).clause())
    if client_id:
        query = query.where(Engagement.client_id == client_id)
    if financial_year:
        query = query.where(Engagement.financial_year == financial_year)
    if status:
        query = query.where(Engagement.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Engagement.created_at.desc(), Engagement.id)
        .offset((page - 1) * size)
        .limit(size)
    )

    items = [
        EngagementItem(
            id=e.id,
            client_id=e.client_id,
            financial_year=e.financial_year,
            status=e.status,
            progress=engine.calculate_progress(WorkflowEntityType.ENGAGEMENT, e.status),
        )
        for e in result.scalars()
    ]
    return EngagementListResponse(
        total=total, page=page, size=size, pages=_pages(total, size), items=items
    )
