from tpcomply.auth.roles import Role, RoleFamily, is_at_least, level_of
from tpcomply.auth.permissions import Grant, PermissionAction, PermissionMatrix, Resource, PERMISSION_TABLE
from tpcomply.auth.errors import AccessError, ErrorKind
from tpcomply.auth.gate import AuthenticatedUser, AuthenticationGate
from tpcomply.auth.scoping import AccessTier, ResourceKind, build_access_filter, can_access_record
from tpcomply.auth.context import RequestContext

__all__ = [
    "Role", "RoleFamily", "is_at_least", "level_of",
    "Grant", "PermissionAction", "PermissionMatrix", "Resource", "PERMISSION_TABLE",
    "AccessError", "ErrorKind",
    "AuthenticatedUser", "AuthenticationGate",
    "AccessTier", "ResourceKind", "build_access_filter", "can_access_record",
    "RequestContext",
]
