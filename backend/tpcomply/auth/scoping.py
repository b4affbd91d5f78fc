"""
Tenant and ownership scoping for client-owned records.

Every filter starts with a firm match; the caller's role only decides how
much further the rows are narrowed:

    FULL                  firm match
    ASSIGNED_OR_REVIEWER  firm match AND (assigned_to = me OR reviewer = me)
    ASSIGNED              firm match AND assigned_to = me

Ownership lives on the client. Engagements (and documents) inherit it by
walking their relationship to the client.

AccessFilter renders the rule two ways: as a SQLAlchemy clause for list
queries, and as an in-memory predicate for single-record checks after a
fetch. Both read the same fields.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from tpcomply.auth.roles import Role
from tpcomply.models import Client, Document, Engagement


class AccessTier(str, Enum):
    FULL = "full"
    ASSIGNED_OR_REVIEWER = "assigned_or_reviewer"
    ASSIGNED = "assigned"


class ResourceKind(str, Enum):
    CLIENT = "client"
    ENGAGEMENT = "engagement"
    DOCUMENT = "document"


FULL_ACCESS_ROLES: frozenset[Role] = frozenset({
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.PARTNER,
})

ASSIGNED_OR_REVIEWER_ROLES: frozenset[Role] = frozenset({
    Role.SENIOR_MANAGER,
    Role.MANAGER,
    Role.OPERATIONS_MANAGER,
    Role.COMPLIANCE_MANAGER,
})

_TIER_FIELDS: dict[AccessTier, tuple[str, ...]] = {
    AccessTier.FULL: (),
    AccessTier.ASSIGNED_OR_REVIEWER: ("assigned_to_id", "reviewer_id"),
    AccessTier.ASSIGNED: ("assigned_to_id",),
}


def access_tier(role: Role) -> AccessTier:
    if role in FULL_ACCESS_ROLES:
        return AccessTier.FULL
    if role in ASSIGNED_OR_REVIEWER_ROLES:
        return AccessTier.ASSIGNED_OR_REVIEWER
    return AccessTier.ASSIGNED


def _field(record: Any, name: str) -> Any:
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


@dataclass(frozen=True)
class AccessFilter:
    kind: ResourceKind
    firm_id: str
    user_id: str
    owner_fields: tuple[str, ...]

    @property
    def tier(self) -> AccessTier:
        for tier, fields in _TIER_FIELDS.items():
            if fields == self.owner_fields:
                return tier
        raise ValueError(f"Unknown ownership fields {self.owner_fields}")

    # ── In-memory evaluation ──

    def _client_matches(self, client: Any) -> bool:
        if client is None or not self.firm_id:
            return False
        if _field(client, "firm_id") != self.firm_id:
            return False
        if not self.owner_fields:
            return True
        return any(_field(client, f) == self.user_id for f in self.owner_fields)

    def matches(self, record: Any) -> bool:
        """Would this record be returned by a query filtered with clause()?"""
        if self.kind is ResourceKind.CLIENT:
            return self._client_matches(record)
        if self.kind is ResourceKind.ENGAGEMENT:
            return self._client_matches(_field(record, "client"))
        # Documents hang off a client directly or through an engagement.
        if self._client_matches(_field(record, "client")):
            return True
        return self._client_matches(_field(_field(record, "engagement"), "client"))

    # ── SQL rendering ──

    def _client_clause(self) -> ColumnElement[bool]:
        if not self.firm_id:
            return false()
        firm_match = Client.firm_id == self.firm_id
        if not self.owner_fields:
            return firm_match
        ownership = or_(*(getattr(Client, f) == self.user_id for f in self.owner_fields))
        return and_(firm_match, ownership)

    def clause(self) -> ColumnElement[bool]:
        client_clause = self._client_clause()
        if self.kind is ResourceKind.CLIENT:
            return client_clause
        if self.kind is ResourceKind.ENGAGEMENT:
            return Engagement.client.has(client_clause)
        return or_(
            Document.client.has(client_clause),
            Document.engagement.has(Engagement.client.has(client_clause)),
        )


def build_access_filter(user, kind: ResourceKind | str) -> AccessFilter:
    """Build the scoping rule for `user` over records of `kind`."""
    return AccessFilter(
        kind=ResourceKind(kind),
        firm_id=user.firm_id,
        user_id=user.id,
        owner_fields=_TIER_FIELDS[access_tier(user.role)],
    )


def can_access_record(user, record: Any, kind: ResourceKind | str = ResourceKind.CLIENT) -> bool:
    """Single-record check after fetch; same rule as build_access_filter."""
    return build_access_filter(user, kind).matches(record)
