"""
Permission matrix — which (resource, action) grants each role holds.

A grant is `resource:action`. Two rules widen a grant beyond its literal
meaning:

  - ("*", ADMIN) is the universal grant: every action on every resource,
    including resources this module has never heard of.
  - (resource, ADMIN) subsumes every other action on that same resource.

PERMISSION_TABLE is plain data so it can be reviewed and diffed on its own;
PermissionMatrix is the immutable, validated view the rest of the code reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from tpcomply.auth.roles import Role, coerce_role


class PermissionAction(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    APPROVE = "APPROVE"
    ADMIN = "ADMIN"


class Resource(str, Enum):
    WILDCARD = "*"
    CLIENTS = "clients"
    ENGAGEMENTS = "engagements"
    DOCUMENTS = "documents"
    USERS = "users"
    SETTINGS = "settings"
    REPORTS = "reports"
    ANALYTICS = "analytics"
    COMPLIANCE = "compliance"
    PROJECTS = "projects"
    TASKS = "tasks"
    TOOLS = "tools"
    DISPUTES = "disputes"
    REFERENCE = "reference"
    AI = "ai"
    AUDIT = "audit"


@dataclass(frozen=True)
class Grant:
    resource: str
    action: PermissionAction

    def __str__(self) -> str:
        return f"{self.resource}:{self.action.value}"


def _grants(resource: Resource, *actions: PermissionAction) -> list[Grant]:
    return [Grant(resource.value, a) for a in actions]


A = PermissionAction
R = Resource

# ── Hierarchical roles ──
_SUPER_ADMIN = _grants(R.WILDCARD, A.ADMIN)

_ADMIN = [
    g
    for r in Resource
    if r is not R.WILDCARD
    for g in _grants(r, A.ADMIN)
]

_PARTNER = [
    *_grants(R.CLIENTS, A.ADMIN),
    *_grants(R.ENGAGEMENTS, A.ADMIN),
    *_grants(R.DOCUMENTS, A.ADMIN),
    *_grants(R.USERS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.SETTINGS, A.READ),
    *_grants(R.REPORTS, A.ADMIN),
    *_grants(R.ANALYTICS, A.READ),
    *_grants(R.COMPLIANCE, A.READ),
    *_grants(R.PROJECTS, A.ADMIN),
    *_grants(R.TASKS, A.ADMIN),
    *_grants(R.TOOLS, A.ADMIN),
    *_grants(R.DISPUTES, A.ADMIN),
    *_grants(R.REFERENCE, A.READ),
    *_grants(R.AI, A.READ),
    *_grants(R.AUDIT, A.READ),
]

_SENIOR_MANAGER = [
    *_grants(R.CLIENTS, A.READ, A.UPDATE),
    *_grants(R.ENGAGEMENTS, A.ADMIN),
    *_grants(R.DOCUMENTS, A.ADMIN),
    *_grants(R.USERS, A.READ),
    *_grants(R.REPORTS, A.CREATE, A.READ),
    *_grants(R.ANALYTICS, A.READ),
    *_grants(R.COMPLIANCE, A.READ),
    *_grants(R.PROJECTS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.TASKS, A.ADMIN),
    *_grants(R.TOOLS, A.ADMIN),
    *_grants(R.DISPUTES, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.REFERENCE, A.READ),
    *_grants(R.AI, A.READ),
    *_grants(R.AUDIT, A.READ),
]

_MANAGER = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.DOCUMENTS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.USERS, A.READ),
    *_grants(R.REPORTS, A.READ),
    *_grants(R.ANALYTICS, A.READ),
    *_grants(R.COMPLIANCE, A.READ),
    *_grants(R.PROJECTS, A.READ, A.UPDATE),
    *_grants(R.TASKS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.TOOLS, A.READ),
    *_grants(R.DISPUTES, A.READ),
    *_grants(R.REFERENCE, A.READ),
    *_grants(R.AI, A.READ),
    *_grants(R.AUDIT, A.READ),
]

_ASSOCIATE = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.READ),
    *_grants(R.DOCUMENTS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.PROJECTS, A.READ),
    *_grants(R.TASKS, A.READ, A.UPDATE),
    *_grants(R.TOOLS, A.READ),
    *_grants(R.DISPUTES, A.READ),
    *_grants(R.REFERENCE, A.READ),
]

_TRAINEE = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.READ),
    *_grants(R.DOCUMENTS, A.READ),
    *_grants(R.PROJECTS, A.READ),
    *_grants(R.TASKS, A.READ),
    *_grants(R.TOOLS, A.READ),
    *_grants(R.REFERENCE, A.READ),
]

# ── Functional roles ──
_OPERATIONS = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.READ, A.UPDATE),
    *_grants(R.PROJECTS, A.READ, A.UPDATE),
    *_grants(R.TASKS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.DOCUMENTS, A.CREATE, A.READ, A.UPDATE),
    *_grants(R.TOOLS, A.READ),
    *_grants(R.DISPUTES, A.READ),
    *_grants(R.REFERENCE, A.READ),
]

_OPERATIONS_MANAGER = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.ADMIN),
    *_grants(R.PROJECTS, A.ADMIN),
    *_grants(R.TASKS, A.ADMIN),
    *_grants(R.DOCUMENTS, A.ADMIN),
    *_grants(R.TOOLS, A.ADMIN),
    *_grants(R.REPORTS, A.READ),
    *_grants(R.ANALYTICS, A.READ),
    *_grants(R.USERS, A.READ),
    *_grants(R.DISPUTES, A.READ),
    *_grants(R.REFERENCE, A.READ),
]

_COMPLIANCE = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.READ),
    *_grants(R.DOCUMENTS, A.READ),
    *_grants(R.COMPLIANCE, A.READ, A.UPDATE),
    *_grants(R.DISPUTES, A.READ),
    *_grants(R.REFERENCE, A.READ),
]

_COMPLIANCE_MANAGER = [
    *_grants(R.CLIENTS, A.READ),
    *_grants(R.ENGAGEMENTS, A.READ),
    *_grants(R.DOCUMENTS, A.READ, A.APPROVE),
    *_grants(R.COMPLIANCE, A.ADMIN),
    *_grants(R.REPORTS, A.READ),
    *_grants(R.ANALYTICS, A.READ),
    *_grants(R.USERS, A.READ),
    *_grants(R.DISPUTES, A.READ, A.UPDATE),
    *_grants(R.REFERENCE, A.READ),
    *_grants(R.AUDIT, A.READ),
]


PERMISSION_TABLE: dict[Role, list[Grant]] = {
    Role.SUPER_ADMIN: _SUPER_ADMIN,
    Role.ADMIN: _ADMIN,
    Role.PARTNER: _PARTNER,
    Role.SENIOR_MANAGER: _SENIOR_MANAGER,
    Role.MANAGER: _MANAGER,
    Role.ASSOCIATE: _ASSOCIATE,
    Role.TRAINEE: _TRAINEE,
    Role.OPERATIONS: _OPERATIONS,
    Role.OPERATIONS_MANAGER: _OPERATIONS_MANAGER,
    Role.COMPLIANCE: _COMPLIANCE,
    Role.COMPLIANCE_MANAGER: _COMPLIANCE_MANAGER,
}


# Dashboard paths and the grant each one needs. Paths not listed are open.
MENU_PERMISSIONS: dict[str, Grant] = {
    "/dashboard": Grant(R.CLIENTS.value, A.READ),
    "/dashboard/clients": Grant(R.CLIENTS.value, A.READ),
    "/dashboard/engagements": Grant(R.ENGAGEMENTS.value, A.READ),
    "/dashboard/documents": Grant(R.DOCUMENTS.value, A.READ),
    "/dashboard/documents/templates": Grant(R.DOCUMENTS.value, A.READ),
    "/dashboard/documents/search": Grant(R.DOCUMENTS.value, A.READ),
    "/dashboard/tools": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/penalty": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/thin-cap": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/safe-harbour": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/form-3ceb": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/benchmarking": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/master-file": Grant(R.TOOLS.value, A.READ),
    "/dashboard/tools/secondary-adjustment": Grant(R.TOOLS.value, A.READ),
    "/dashboard/disputes": Grant(R.DISPUTES.value, A.READ),
    "/dashboard/reference": Grant(R.REFERENCE.value, A.READ),
    "/dashboard/analytics": Grant(R.ANALYTICS.value, A.READ),
    "/dashboard/analytics/reports": Grant(R.REPORTS.value, A.READ),
    "/dashboard/analytics/kpis": Grant(R.ANALYTICS.value, A.READ),
    "/dashboard/status": Grant(R.ANALYTICS.value, A.READ),
    "/dashboard/compliance": Grant(R.COMPLIANCE.value, A.READ),
    "/dashboard/compliance/audit-log": Grant(R.AUDIT.value, A.READ),
    "/dashboard/ai": Grant(R.AI.value, A.READ),
    "/dashboard/ai/recommendations": Grant(R.AI.value, A.READ),
    "/dashboard/team": Grant(R.USERS.value, A.READ),
    "/dashboard/settings": Grant(R.SETTINGS.value, A.ADMIN),
}


def _resource_key(resource: Resource | str) -> str:
    return resource.value if isinstance(resource, Resource) else str(resource)


class PermissionMatrix:
    """Immutable role → grant-set mapping with the resolver that walks it."""

    def __init__(self, table: Mapping[Role, Iterable[Grant]]):
        missing = [r.value for r in Role if r not in table]
        if missing:
            raise ValueError(f"Permission table has no entry for roles: {missing}")
        self._grants: Mapping[Role, frozenset[Grant]] = MappingProxyType(
            {role: frozenset(grants) for role, grants in table.items()}
        )

    def grants_for(self, role: Role | str) -> frozenset[Grant]:
        r = coerce_role(role)
        if r is None:
            return frozenset()
        return self._grants.get(r, frozenset())

    def permission_strings(self, role: Role | str) -> list[str]:
        return sorted(str(g) for g in self.grants_for(role))

    def has_permission(
        self,
        role: Role | str,
        resource: Resource | str,
        action: PermissionAction | str,
    ) -> bool:
        r = coerce_role(role)
        if r is None or r not in self._grants:
            return False
        try:
            act = PermissionAction(action)
        except ValueError:
            return False
        res = _resource_key(resource)
        grants = self._grants[r]

        if Grant(Resource.WILDCARD.value, PermissionAction.ADMIN) in grants:
            return True
        if Grant(res, act) in grants:
            return True
        return Grant(res, PermissionAction.ADMIN) in grants

    def can_access_menu(self, role: Role | str, path: str) -> bool:
        grant = MENU_PERMISSIONS.get(path)
        if grant is None:
            return True
        return self.has_permission(role, grant.resource, grant.action)
