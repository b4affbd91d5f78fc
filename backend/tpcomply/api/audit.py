"""
Audit API Router — query the firm's audit trail and verify its hash chain.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tpcomply.api.deps import get_db, require, require_role
from tpcomply.auth.context import RequestContext
from tpcomply.auth.permissions import PermissionAction, Resource
from tpcomply.auth.roles import Role
from tpcomply.schemas.schemas import AuditEntry, AuditListResponse, IntegrityCheckResponse
from tpcomply.services.audit_service import AuditService

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("", response_model=AuditListResponse)
async def list_audit_entries(
    event_type: str | None = Query(None, description="Filter by event type"),
    resource_type: str | None = Query(None, description="Filter by resource type"),
    resource_id: str | None = Query(None, description="Filter by resource ID"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=200, description="Page size"),
    ctx: RequestContext = Depends(require(Resource.AUDIT, PermissionAction.READ)),
    db: AsyncSession = Depends(get_db),
) -> AuditListResponse:
    """Paginated audit entries for the caller's firm, newest first."""
    service = AuditService(db)

    entries = await service.get_entries(
        ctx.firm_id,
        event_type=event_type,
        resource_type=resource_type,
        resource_id=resource_id,
        limit=size,
        offset=(page - 1) * size,
    )
    total = await service.get_entry_count(
        ctx.firm_id,
        event_type=event_type,
        resource_type=resource_type,
        resource_id=resource_id,
    )

    return AuditListResponse(
        total=total,
        page=page,
        size=size,
        pages=(total + size - 1) // size if total > 0 else 1,
        items=[AuditEntry.model_validate(e) for e in entries],
    )


@router.get("/verify", response_model=IntegrityCheckResponse)
async def verify_integrity(
    ctx: RequestContext = Depends(require_role(Role.PARTNER, Resource.AUDIT, PermissionAction.READ)),
    db: AsyncSession = Depends(get_db),
) -> IntegrityCheckResponse:
    """Walk the firm's audit chain and verify every hash link."""
    result = await AuditService(db).verify_chain_integrity(ctx.firm_id)
    return IntegrityCheckResponse(**result)
