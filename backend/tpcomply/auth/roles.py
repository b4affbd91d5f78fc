"""
The closed set of roles a firm member can hold.

Roles come in two disjoint families:

    Hierarchical (highest → lowest privilege):
        SUPER_ADMIN > ADMIN > PARTNER > SENIOR_MANAGER > MANAGER > ASSOCIATE > TRAINEE

    Functional (department-scoped, outside the ordering):
        OPERATIONS, OPERATIONS_MANAGER, COMPLIANCE, COMPLIANCE_MANAGER

Functional roles receive resource grants directly from the permission matrix
but never satisfy a minimum-hierarchical-role check.
"""

from enum import Enum


class RoleFamily(str, Enum):
    HIERARCHICAL = "hierarchical"
    FUNCTIONAL = "functional"


class Role(str, Enum):
    # ── Hierarchical ──
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"
    SENIOR_MANAGER = "SENIOR_MANAGER"
    MANAGER = "MANAGER"
    ASSOCIATE = "ASSOCIATE"
    TRAINEE = "TRAINEE"

    # ── Functional ──
    OPERATIONS = "OPERATIONS"
    OPERATIONS_MANAGER = "OPERATIONS_MANAGER"
    COMPLIANCE = "COMPLIANCE"
    COMPLIANCE_MANAGER = "COMPLIANCE_MANAGER"

    @property
    def family(self) -> RoleFamily:
        if self in _HIERARCHY_INDEX:
            return RoleFamily.HIERARCHICAL
        return RoleFamily.FUNCTIONAL

    @property
    def rank(self) -> int | None:
        """Position in the hierarchy (0 = most privileged), None for functional roles."""
        return _HIERARCHY_INDEX.get(self)

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


HIERARCHY_ROLES: tuple[Role, ...] = (
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.PARTNER,
    Role.SENIOR_MANAGER,
    Role.MANAGER,
    Role.ASSOCIATE,
    Role.TRAINEE,
)

FUNCTIONAL_ROLES: tuple[Role, ...] = (
    Role.OPERATIONS,
    Role.OPERATIONS_MANAGER,
    Role.COMPLIANCE,
    Role.COMPLIANCE_MANAGER,
)

_HIERARCHY_INDEX: dict[Role, int] = {role: i for i, role in enumerate(HIERARCHY_ROLES)}


ROLE_LABELS: dict[Role, str] = {
    Role.SUPER_ADMIN: "Super Admin",
    Role.ADMIN: "Admin",
    Role.PARTNER: "Partner",
    Role.SENIOR_MANAGER: "Senior Manager",
    Role.MANAGER: "Manager",
    Role.ASSOCIATE: "Associate",
    Role.TRAINEE: "Trainee",
    Role.OPERATIONS: "Operations",
    Role.OPERATIONS_MANAGER: "Operations Manager",
    Role.COMPLIANCE: "Compliance",
    Role.COMPLIANCE_MANAGER: "Compliance Manager",
}

# Grouping used by the team/settings screens
ROLE_CATEGORIES: dict[str, tuple[Role, ...]] = {
    "management": (Role.SUPER_ADMIN, Role.ADMIN, Role.PARTNER, Role.SENIOR_MANAGER, Role.MANAGER),
    "operations": (Role.OPERATIONS_MANAGER, Role.OPERATIONS),
    "compliance": (Role.COMPLIANCE_MANAGER, Role.COMPLIANCE),
    "staff": (Role.ASSOCIATE, Role.TRAINEE),
}


def coerce_role(value: "Role | str | None") -> Role | None:
    """Map a stored/claimed role string onto the closed set, or None if unknown."""
    if isinstance(value, Role):
        return value
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def is_hierarchical(role: Role | str) -> bool:
    r = coerce_role(role)
    return r is not None and r.family is RoleFamily.HIERARCHICAL


def is_functional(role: Role | str) -> bool:
    r = coerce_role(role)
    return r is not None and r.family is RoleFamily.FUNCTIONAL


def level_of(role: Role | str) -> int | None:
    """Hierarchy index of a role; None means "not comparable"."""
    r = coerce_role(role)
    return r.rank if r is not None else None


def is_at_least(user_role: Role | str, required_role: Role | str) -> bool:
    """
    True iff both roles are hierarchical and user_role is at least as
    privileged as required_role. Functional or unknown roles never pass.
    """
    user_level = level_of(user_role)
    required_level = level_of(required_role)
    if user_level is None or required_level is None:
        return False
    return user_level <= required_level


def is_management_role(role: Role | str) -> bool:
    return coerce_role(role) in ROLE_CATEGORIES["management"]


def is_functional_manager(role: Role | str) -> bool:
    r = coerce_role(role)
    return r is not None and r.family is RoleFamily.FUNCTIONAL and r.value.endswith("_MANAGER")
