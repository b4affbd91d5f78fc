"""
Audit Service

Firm-scoped, hash-chained audit trail. Each firm has its own chain: an
entry's hash covers its content plus the hash of the firm's previous entry,
so editing or deleting any row breaks verification from that row onward.
"""

import hashlib
import json
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tpcomply.models import AuditLog, Firm
from tpcomply.workflow.engine import WorkflowHistory


class AuditService:
    """Append-only audit log writer and verifier."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _calculate_hash(self, content: dict, previous_hash: str | None) -> str:
        """SHA-256 of entry contents + previous hash."""
        payload = {
            "content": content,
            "previous_hash": previous_hash or "",
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(raw.encode()).hexdigest()

    @staticmethod
    def _content(entry: AuditLog) -> dict:
        return {
            "firm_id": entry.firm_id,
            "event_type": entry.event_type,
            "actor": entry.actor,
            "action": entry.action,
            "resource_type": entry.resource_type,
            "resource_id": entry.resource_id,
            "details": entry.details,
        }

    @staticmethod
    def _chain_lock(firm_id: str):
        # Appends to one firm's chain are serialised on the firm row until the
        # transaction ends; sqlite has no row locks and serialises writers itself.
        return select(Firm.id).where(Firm.id == firm_id).with_for_update()

    async def _get_latest_hash(self, firm_id: str) -> str | None:
        await self.session.execute(self._chain_lock(firm_id))
        result = await self.session.execute(
            select(AuditLog.current_hash)
            .where(AuditLog.firm_id == firm_id)
            .order_by(AuditLog.id.desc())
            .limit(1)
        )
        return result.scalar()

    async def log_event(
        self,
        firm_id: str,
        event_type: str,
        actor: str,
        action: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        details: dict | None = None,
    ) -> AuditLog:
        """
        Write an immutable audit entry at the end of the firm's chain.

        Args:
            firm_id: Tenant owning the chain
            event_type: e.g. "status_changed", "approval_requested"
            actor: e.g. "PARTNER:<user id>", "system"
            action: Human-readable description
            resource_type: "engagement", "document", ...
            resource_id: The ID of the affected record
            details: Full event details as dict
        """
        previous_hash = await self._get_latest_hash(firm_id)

        entry = AuditLog(
            event_id=str(uuid4()),
            firm_id=firm_id,
            event_type=event_type,
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            previous_hash=previous_hash,
        )
        entry.current_hash = self._calculate_hash(self._content(entry), previous_hash)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def log_status_change(self, history: WorkflowHistory, actor: str | None = None) -> AuditLog:
        entity = history.entity_type.value.lower()
        return await self.log_event(
            firm_id=history.firm_id,
            event_type="status_changed",
            actor=actor or history.transitioned_by,
            action=f"{entity.capitalize()} {history.entity_id} status: "
                   f"{history.from_status} → {history.to_status}",
            resource_type=entity,
            resource_id=history.entity_id,
            details={
                "from_status": history.from_status,
                "to_status": history.to_status,
                "transitioned_by": history.transitioned_by,
                "transitioned_at": history.transitioned_at.isoformat(),
                "comment": history.comment,
                "metadata": history.metadata,
            },
        )

    async def log_approval_requested(
        self,
        firm_id: str,
        entity_type: str,
        entity_id: str,
        from_status: str,
        to_status: str,
        actor: str,
    ) -> AuditLog:
        entity = entity_type.lower()
        return await self.log_event(
            firm_id=firm_id,
            event_type="approval_requested",
            actor=actor,
            action=f"Approval requested for {entity} {entity_id}: {from_status} → {to_status}",
            resource_type=entity,
            resource_id=entity_id,
            details={"from_status": from_status, "to_status": to_status},
        )

    async def verify_chain_integrity(self, firm_id: str) -> dict:
        """Walk the firm's chain oldest-first and re-check every link and hash."""
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.firm_id == firm_id)
            .order_by(AuditLog.id.asc())
        )
        entries = list(result.scalars())

        if not entries:
            return {"valid": True, "entries_checked": 0, "first_invalid": None}

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].current_hash if i > 0 else None
            if entry.previous_hash != expected_prev:
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "previous_hash mismatch",
                }

            expected_hash = self._calculate_hash(self._content(entry), entry.previous_hash)
            if entry.current_hash != expected_hash:
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "current_hash mismatch (data tampered)",
                }

        return {"valid": True, "entries_checked": len(entries), "first_invalid": None}

    async def get_entries(
        self,
        firm_id: str,
        event_type: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        query = (
            select(AuditLog)
            .where(AuditLog.firm_id == firm_id)
            .order_by(AuditLog.id.desc())
        )
        if event_type:
            query = query.where(AuditLog.event_type == event_type)
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AuditLog.resource_id == resource_id)

        result = await self.session.execute(query.offset(offset).limit(limit))
        return list(result.scalars())

    async def get_entry_count(
        self,
        firm_id: str,
        event_type: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
    ) -> int:
        query = select(func.count()).select_from(AuditLog).where(AuditLog.firm_id == firm_id)
        if event_type:
            query = query.where(AuditLog.event_type == event_type)
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AuditLog.resource_id == resource_id)
        result = await self.session.execute(query)
        return result.scalar() or 0
