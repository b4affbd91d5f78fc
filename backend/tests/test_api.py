"""HTTP tests: caller resolution, scoped reads, transitions and audit."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tpcomply.api.deps import get_db
from tpcomply.api.errors import STATUS_CODES
from tpcomply.auth.errors import ErrorKind
from tpcomply.auth.roles import Role
from tpcomply.main import create_app
from tpcomply.models import AuditLog, Engagement
from tpcomply.services.audit_service import AuditService
from tests.conftest import auth_header, committing_db, role_header


class TestErrorMapping:
    def test_every_kind_has_a_status(self):
        assert set(STATUS_CODES) == set(ErrorKind)

    def test_codes(self):
        assert STATUS_CODES[ErrorKind.UNAUTHENTICATED] == 401
        assert STATUS_CODES[ErrorKind.ACCOUNT_NOT_FOUND] == 401
        assert STATUS_CODES[ErrorKind.NO_FIRM_ASSIGNED] == 403
        assert STATUS_CODES[ErrorKind.FORBIDDEN] == 403
        assert STATUS_CODES[ErrorKind.INVALID_TRANSITION] == 422
        assert STATUS_CODES[ErrorKind.TRANSITION_NOT_ALLOWED_FOR_ROLE] == 403
        assert STATUS_CODES[ErrorKind.RESOLUTION_FAILURE] == 500

    def test_error_body_is_documented(self):
        schema = create_app().openapi()
        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"error", "detail"}
        responses = schema["paths"]["/api/workflow/transition"]["post"]["responses"]
        assert responses["404"]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/ErrorResponse"
        }


@pytest.mark.asyncio
class TestMe:
    async def test_me(self, client_as):
        async with client_as(Role.COMPLIANCE_MANAGER) as c:
            resp = await c.get("/api/auth/me")
        assert resp.status_code == 200
        data = resp.json()
        assert data["role"] == "COMPLIANCE_MANAGER"
        assert data["role_label"] == "Compliance Manager"
        assert data["firm"] == {"id": "firm-a", "name": "Acme TP Advisors"}
        assert "documents:APPROVE" in data["permissions"]

    async def test_no_token(self, client_as):
        async with client_as() as c:
            resp = await c.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthenticated"

    async def test_no_firm(self, client_as):
        async with client_as(auth_header("user-nofirm", "nofirm@example.test")) as c:
            resp = await c.get("/api/auth/me")
        assert resp.status_code == 403
        assert resp.json()["error"] == "no_firm_assigned"

    async def test_inactive(self, client_as):
        async with client_as(auth_header("user-inactive", "inactive@firm-a.test")) as c:
            resp = await c.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"] == "account_not_found"

    async def test_request_id_propagates(self, client_as):
        async with client_as(Role.PARTNER) as c:
            resp = await c.get("/api/auth/me", headers={"X-Request-ID": "req-42"})
        assert resp.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
class TestClients:
    async def _ids(self, client_as, role):
        async with client_as(role) as c:
            resp = await c.get("/api/clients")
        assert resp.status_code == 200
        return {item["id"] for item in resp.json()["items"]}

    async def test_partner_sees_whole_firm(self, client_as):
        ids = await self._ids(client_as, Role.PARTNER)
        assert ids == {"client-assoc", "client-mgr", "client-ops", "client-unassigned"}

    async def test_manager_sees_assigned_and_reviewed(self, client_as):
        assert await self._ids(client_as, Role.MANAGER) == {"client-assoc", "client-mgr"}

    async def test_associate_sees_assigned_only(self, client_as):
        assert await self._ids(client_as, Role.ASSOCIATE) == {"client-assoc"}

    async def test_operations_manager_as_reviewer(self, client_as):
        assert await self._ids(client_as, Role.OPERATIONS_MANAGER) == {"client-ops"}

    async def test_trainee_sees_nothing(self, client_as):
        assert await self._ids(client_as, Role.TRAINEE) == set()

    async def test_other_firm(self, client_as):
        async with client_as(auth_header("user-b-partner", "partner@firm-b.test")) as c:
            resp = await c.get("/api/clients")
        assert [i["id"] for i in resp.json()["items"]] == ["client-b"]

    async def test_search(self, client_as):
        async with client_as(Role.ADMIN) as c:
            resp = await c.get("/api/clients", params={"search": "unassigned"})
        assert resp.json()["total"] == 1

    async def test_get_single_client(self, client_as):
        async with client_as(Role.ASSOCIATE) as c:
            ok = await c.get("/api/clients/client-assoc")
            denied = await c.get("/api/clients/client-mgr")
            other_firm = await c.get("/api/clients/client-b")
            missing = await c.get("/api/clients/nope")
        assert ok.status_code == 200
        assert denied.status_code == 403
        assert other_firm.status_code == 404
        assert missing.status_code == 404

    async def test_engagements_follow_client_ownership(self, client_as):
        async with client_as(Role.MANAGER) as c:
            resp = await c.get("/api/engagements")
        items = {i["id"]: i for i in resp.json()["items"]}
        assert set(items) == {"eng-assoc", "eng-mgr"}
        assert items["eng-mgr"]["progress"] == 50


@pytest.mark.asyncio
class TestWorkflowRoutes:
    async def test_allowed_transitions(self, client_as):
        async with client_as(Role.MANAGER) as c:
            resp = await c.get("/api/workflow/transitions",
                               params={"entity_type": "engagement", "current_status": "DATA_COLLECTION"})
        data = resp.json()
        assert set(data["allowed"]) == {"SAFE_HARBOUR_CHECK", "BENCHMARKING"}
        assert data["is_terminal"] is False
        assert data["progress"] == 13

    async def test_definition(self, client_as):
        async with client_as(Role.TRAINEE) as c:
            resp = await c.get("/api/workflow/definitions/TASK")
        assert resp.json()["progression"] == ["TODO", "IN_PROGRESS", "REVIEW", "DONE"]

    async def test_unknown_entity_type(self, client_as):
        async with client_as(Role.ADMIN) as c:
            resp = await c.get("/api/workflow/transitions",
                               params={"entity_type": "invoice", "current_status": "X"})
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestTransition:
    async def _post(self, client_as, who, **body):
        async with client_as(who) as c:
            return await c.post("/api/workflow/transition", json=body)

    async def _status(self, session, engagement_id):
        return (await session.execute(
            select(Engagement.status).where(Engagement.id == engagement_id)
        )).scalar_one()

    async def test_manager_requests_approval(self, client_as, seeded):
        resp = await self._post(client_as, Role.MANAGER, entity_type="ENGAGEMENT",
                                entity_id="eng-assoc", target_status="APPROVED")
        assert resp.status_code == 200
        data = resp.json()
        assert data["requires_approval"] is True
        assert data["status"] == "REVIEW"
        assert await self._status(seeded, "eng-assoc") == "REVIEW"

        events = (await seeded.execute(select(AuditLog.event_type))).scalars().all()
        assert events == ["approval_requested"]

    async def test_partner_approves(self, client_as, seeded):
        resp = await self._post(client_as, Role.PARTNER, entity_type="ENGAGEMENT",
                                entity_id="eng-assoc", target_status="APPROVED", comment="fine")
        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"
        assert resp.json()["previous_status"] == "REVIEW"
        assert await self._status(seeded, "eng-assoc") == "APPROVED"

        entry = (await seeded.execute(select(AuditLog))).scalar_one()
        assert entry.event_type == "status_changed"
        assert entry.firm_id == "firm-a"
        assert entry.actor == "PARTNER:user-partner"
        assert entry.details["comment"] == "fine"

    async def test_invalid_edge(self, client_as, seeded):
        resp = await self._post(client_as, Role.ADMIN, entity_type="ENGAGEMENT",
                                entity_id="eng-unassigned", target_status="COMPLETED")
        assert resp.status_code == 422
        assert resp.json()["error"] == "invalid_transition"
        assert (await seeded.execute(select(AuditLog))).first() is None

    async def test_invisible_records_are_not_found(self, client_as):
        resp = await self._post(client_as, Role.OPERATIONS_MANAGER, entity_type="DOCUMENT",
                                entity_id="doc-assoc", target_status="IN_PROGRESS")
        assert resp.status_code == 404

        resp = await self._post(client_as, Role.SENIOR_MANAGER, entity_type="ENGAGEMENT",
                                entity_id="eng-mgr", target_status="REVIEW")
        assert resp.status_code == 404

    async def test_transition_not_allowed_for_role(self, client_as):
        resp = await self._post(client_as, Role.ASSOCIATE, entity_type="DOCUMENT",
                                entity_id="doc-assoc", target_status="IN_PROGRESS")
        assert resp.status_code == 200

        resp = await self._post(client_as, Role.ASSOCIATE, entity_type="DOCUMENT",
                                entity_id="doc-assoc", target_status="PENDING_REVIEW")
        assert resp.status_code == 200

        resp = await self._post(client_as, Role.ASSOCIATE, entity_type="DOCUMENT",
                                entity_id="doc-assoc", target_status="REVIEW")
        assert resp.status_code == 403
        assert resp.json()["error"] == "transition_not_allowed_for_role"

    async def test_permission_checked_before_visibility(self, client_as):
        # TRAINEE has documents:READ but not UPDATE
        resp = await self._post(client_as, Role.TRAINEE, entity_type="DOCUMENT",
                                entity_id="doc-assoc", target_status="IN_PROGRESS")
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"

    async def test_document_through_engagement(self, client_as):
        resp = await self._post(client_as, Role.MANAGER, entity_type="DOCUMENT",
                                entity_id="doc-eng-mgr", target_status="IN_PROGRESS")
        assert resp.status_code == 200
        assert resp.json()["status"] == "IN_PROGRESS"

    async def test_other_firm_record_is_not_found(self, client_as):
        resp = await self._post(client_as, Role.PARTNER, entity_type="ENGAGEMENT",
                                entity_id="eng-b", target_status="APPROVED")
        assert resp.status_code == 404

    async def test_tasks_are_not_persisted_here(self, client_as):
        resp = await self._post(client_as, Role.ADMIN, entity_type="TASK",
                                entity_id="t1", target_status="DONE")
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestAuditRoutes:
    async def test_verify_after_transitions(self, client_as):
        async with client_as(Role.PARTNER) as c:
            await c.post("/api/workflow/transition", json={
                "entity_type": "ENGAGEMENT", "entity_id": "eng-unassigned",
                "target_status": "DATA_COLLECTION",
            })
            await c.post("/api/workflow/transition", json={
                "entity_type": "ENGAGEMENT", "entity_id": "eng-unassigned",
                "target_status": "SAFE_HARBOUR_CHECK",
            })
            resp = await c.get("/api/audit/verify")
            listing = await c.get("/api/audit")
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "entries_checked": 2, "first_invalid": None, "reason": None}
        assert listing.json()["total"] == 2

    async def test_verify_needs_partner(self, client_as):
        async with client_as(Role.MANAGER) as c:
            resp = await c.get("/api/audit/verify")
        assert resp.status_code == 403
        assert "PARTNER" in resp.json()["detail"]

    async def test_functional_role_with_audit_read_is_refused(self, client_as):
        async with client_as(Role.COMPLIANCE_MANAGER) as c:
            listing = await c.get("/api/audit")
            verify = await c.get("/api/audit/verify")
        assert listing.status_code == 200
        assert verify.status_code == 403

    async def test_filtered_listing_counts_only_matches(self, client_as):
        async with client_as(Role.PARTNER) as c:
            for entity_id, target in [
                ("eng-unassigned", "DATA_COLLECTION"),
                ("eng-unassigned", "SAFE_HARBOUR_CHECK"),
                ("eng-mgr", "REVIEW"),
            ]:
                resp = await c.post("/api/workflow/transition", json={
                    "entity_type": "ENGAGEMENT", "entity_id": entity_id, "target_status": target,
                })
                assert resp.status_code == 200
            by_id = (await c.get("/api/audit", params={"resource_id": "eng-mgr"})).json()
            by_type = (await c.get("/api/audit", params={"resource_type": "document"})).json()

        assert by_id["total"] == 1
        assert len(by_id["items"]) == 1
        assert by_id["items"][0]["resource_id"] == "eng-mgr"
        assert by_id["pages"] == 1
        assert by_type["total"] == 0
        assert by_type["items"] == []


@pytest.mark.asyncio
class TestUnitOfWork:
    """Transitions through the committing session used in production."""

    async def _transition(self, engine, role, body):
        application = create_app()
        application.dependency_overrides[get_db] = committing_db(engine)
        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url="http://test", headers=role_header(role)) as c:
            return await c.post("/api/workflow/transition", json=body)

    async def _stored(self, engine, engagement_id):
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with session_factory() as fresh:
            status = (await fresh.execute(
                select(Engagement.status).where(Engagement.id == engagement_id)
            )).scalar_one()
            audit_rows = (await fresh.execute(select(func.count()).select_from(AuditLog))).scalar()
        return status, audit_rows

    async def test_success_commits_status_and_audit(self, db_engine, seeded):
        resp = await self._transition(db_engine, Role.MANAGER, {
            "entity_type": "ENGAGEMENT", "entity_id": "eng-mgr", "target_status": "REVIEW",
        })
        assert resp.status_code == 200
        assert await self._stored(db_engine, "eng-mgr") == ("REVIEW", 1)

    async def test_failed_audit_rolls_back_status(self, db_engine, seeded, monkeypatch):
        async def broken(self, history, actor=None):
            raise RuntimeError("audit table unavailable")

        monkeypatch.setattr(AuditService, "log_status_change", broken)
        resp = await self._transition(db_engine, Role.MANAGER, {
            "entity_type": "ENGAGEMENT", "entity_id": "eng-mgr", "target_status": "REVIEW",
        })
        assert resp.status_code == 500
        assert resp.json()["error"] == "resolution_failure"
        assert await self._stored(db_engine, "eng-mgr") == ("DOCUMENTATION", 0)
