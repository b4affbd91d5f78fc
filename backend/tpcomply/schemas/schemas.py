"""
Pydantic schemas for API request/response models.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Pagination ──

class PaginatedResponse(BaseModel):
    total: int
    page: int
    size: int
    pages: int


# ── Auth ──

class FirmSummary(BaseModel):
    id: str
    name: str | None = None


class CurrentUserResponse(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: str
    role_label: str
    firm: FirmSummary
    permissions: list[str]


# ── Clients / engagements ──

class ClientItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    pan: str | None = None
    status: str
    assigned_to_id: str | None = None
    reviewer_id: str | None = None


class ClientListResponse(PaginatedResponse):
    items: list[ClientItem]


class EngagementItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    financial_year: str
    status: str
    progress: int = 0


class EngagementListResponse(PaginatedResponse):
    items: list[EngagementItem]


# ── Workflow ──

class AllowedTransitionsResponse(BaseModel):
    entity_type: str
    current_status: str
    allowed: list[str]
    progress: int
    is_terminal: bool


class TransitionBody(BaseModel):
    entity_type: str
    entity_id: str
    target_status: str
    comment: str | None = Field(None, max_length=1000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TransitionResponse(BaseModel):
    entity_type: str
    entity_id: str
    previous_status: str
    status: str
    requires_approval: bool
    progress: int


# ── Audit ──

class AuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    event_type: str
    actor: str
    action: str
    resource_type: str | None = None
    resource_id: str | None = None
    details: dict = {}
    previous_hash: str | None = None
    current_hash: str
    created_at: datetime | None = None


class AuditListResponse(PaginatedResponse):
    items: list[AuditEntry]


class IntegrityCheckResponse(BaseModel):
    valid: bool
    entries_checked: int
    first_invalid: str | None = None
    reason: str | None = None


# ── Errors ──

class ErrorResponse(BaseModel):
    error: str
    detail: str
