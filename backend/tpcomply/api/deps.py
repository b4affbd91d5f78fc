"""
API Dependencies — DB session, caller resolution, permission guards.

Every authenticated route resolves the caller the same way:
  1. Bearer token from the Authorization header
  2. AuthenticationGate re-reads the user + firm from the database
  3. RequestContext pairs that user with the app's PermissionMatrix

The PermissionMatrix and WorkflowEngine are built once in create_app() and
read from app.state, so tests can swap either through dependency_overrides.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tpcomply.auth.context import RequestContext
from tpcomply.auth.gate import AuthenticatedUser, AuthenticationGate
from tpcomply.auth.permissions import PermissionAction, PermissionMatrix, Resource
from tpcomply.auth.roles import Role
from tpcomply.database import get_db
from tpcomply.middleware.request_context import bind_caller
from tpcomply.workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)

__all__ = [
    "get_db",
    "get_permission_matrix",
    "get_workflow_engine",
    "get_current_user",
    "get_request_context",
    "require",
    "require_role",
]


def get_permission_matrix(request: Request) -> PermissionMatrix:
    return request.app.state.permission_matrix


def get_workflow_engine(request: Request) -> WorkflowEngine:
    return request.app.state.workflow_engine


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedUser:
    user = await AuthenticationGate(db).resolve_caller(_bearer_token(request))
    bind_caller(user.id, user.firm_id)
    return user


async def get_request_context(
    user: AuthenticatedUser = Depends(get_current_user),
    matrix: PermissionMatrix = Depends(get_permission_matrix),
) -> RequestContext:
    return RequestContext(user=user, matrix=matrix)


# ── Permission guards ────────────────────────────────────────────────────────

def require(resource: Resource, action: PermissionAction):
    """
    FastAPI dependency that checks the caller's role holds (resource, action).

    Usage:
        @router.get("/clients")
        async def list_clients(ctx: RequestContext = Depends(require(Resource.CLIENTS, PermissionAction.READ))):
            ...
    """
    async def _check(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        ctx.require_permission(resource, action)
        return ctx
    return _check


def require_role(minimum: Role, resource: Resource | None = None, action: PermissionAction | None = None):
    """
    FastAPI dependency for a minimum hierarchical role, optionally combined
    with a resource grant. Functional roles never satisfy the role check.
    """
    async def _check(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if resource is not None and action is not None:
            ctx.require_permission(resource, action)
        ctx.require_role(minimum)
        return ctx
    return _check
