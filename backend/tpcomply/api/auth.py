"""Auth API: the caller as the server resolves it."""

from fastapi import APIRouter, Depends

from tpcomply.api.deps import get_request_context
from tpcomply.auth.context import RequestContext
from tpcomply.schemas.schemas import CurrentUserResponse, FirmSummary

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def me(ctx: RequestContext = Depends(get_request_context)):
    """Resolved user, firm and the permission strings their role grants."""
    user = ctx.user
    return CurrentUserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        role_label=user.role.label,
        firm=FirmSummary(id=user.firm_id, name=user.firm_name),
        permissions=ctx.matrix.permission_strings(user.role),
    )
