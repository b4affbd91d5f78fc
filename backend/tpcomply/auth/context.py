"""
Per-request caller context: who is asking, and what their role may do.

Built once per request from the AuthenticatedUser the gate resolved and the
PermissionMatrix the app was started with. Route handlers call the
require_* helpers; failures raise Forbidden, which the HTTP layer maps to 403.
"""

from __future__ import annotations

from dataclasses import dataclass

from tpcomply.auth.errors import Forbidden
from tpcomply.auth.gate import AuthenticatedUser
from tpcomply.auth.permissions import PermissionAction, PermissionMatrix, Resource
from tpcomply.auth.roles import Role, is_at_least
from tpcomply.auth.scoping import AccessFilter, ResourceKind, build_access_filter


@dataclass
class RequestContext:
    user: AuthenticatedUser
    matrix: PermissionMatrix

    @property
    def role(self) -> Role:
        return self.user.role

    @property
    def firm_id(self) -> str:
        return self.user.firm_id

    def can(self, resource: Resource | str, action: PermissionAction) -> bool:
        return self.matrix.has_permission(self.user.role, resource, action)

    def require_permission(self, resource: Resource | str, action: PermissionAction) -> None:
        """Raise Forbidden if the caller's role lacks (resource, action)."""
        if not self.can(resource, action):
            res = resource.value if isinstance(resource, Resource) else resource
            raise Forbidden(
                f"Role {self.user.role.value} does not have {action.value} permission on {res}"
            )

    def require_role(self, minimum: Role) -> None:
        """Raise Forbidden unless the caller's hierarchical role is at least `minimum`."""
        if not is_at_least(self.user.role, minimum):
            raise Forbidden(f"This action requires {minimum.value} role or higher")

    def access_filter(self, kind: ResourceKind) -> AccessFilter:
        return build_access_filter(self.user, kind)

    @property
    def actor(self) -> str:
        """Identity string for audit logging."""
        return f"{self.user.role.value}:{self.user.id}"
