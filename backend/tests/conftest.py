"""Shared test fixtures for backend tests."""

import os

os.environ.setdefault("TPCOMPLY_ENVIRONMENT", "test")

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tpcomply.api.deps import get_db
from tpcomply.auth.jwt import create_access_token
from tpcomply.auth.roles import Role
from tpcomply.database import Base
from tpcomply.main import create_app
from tpcomply.models import Client, Document, Engagement, Firm, User

FIRM_A = "firm-a"
FIRM_B = "firm-b"


def user_id(role: Role) -> str:
    return f"user-{role.value.lower()}"


def email_for(role: Role) -> str:
    return f"{role.value.lower()}@firm-a.test"


# Ownership layout used across the suite:
#   client-assoc       assigned ASSOCIATE, reviewed by MANAGER
#   client-mgr         assigned MANAGER
#   client-ops         assigned OPERATIONS, reviewed by OPERATIONS_MANAGER
#   client-unassigned  nobody
#   client-b           firm B, assigned to firm B's partner
CLIENT_OWNERS = {
    "client-assoc": (FIRM_A, user_id(Role.ASSOCIATE), user_id(Role.MANAGER)),
    "client-mgr": (FIRM_A, user_id(Role.MANAGER), None),
    "client-ops": (FIRM_A, user_id(Role.OPERATIONS), user_id(Role.OPERATIONS_MANAGER)),
    "client-unassigned": (FIRM_A, None, None),
    "client-b": (FIRM_B, "user-b-partner", None),
}

ENGAGEMENTS = {
    "eng-assoc": ("client-assoc", "REVIEW"),
    "eng-mgr": ("client-mgr", "DOCUMENTATION"),
    "eng-unassigned": ("client-unassigned", "NOT_STARTED"),
    "eng-b": ("client-b", "REVIEW"),
}

# (client_id, engagement_id, status)
DOCUMENTS = {
    "doc-assoc": ("client-assoc", None, "DRAFT"),
    "doc-eng-mgr": (None, "eng-mgr", "REVIEW"),
    "doc-b": ("client-b", None, "DRAFT"),
}


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(db_session: AsyncSession) -> AsyncSession:
    """Two firms, one firm-A user per role, and the client layout above."""
    db_session.add_all([Firm(id=FIRM_A, name="Acme TP Advisors"), Firm(id=FIRM_B, name="Other LLP")])
    db_session.add_all(
        User(id=user_id(role), email=email_for(role), name=role.label, role=role.value, firm_id=FIRM_A)
        for role in Role
    )
    db_session.add_all([
        User(id="user-b-partner", email="partner@firm-b.test", role="PARTNER", firm_id=FIRM_B),
        User(id="user-nofirm", email="nofirm@example.test", role="ASSOCIATE", firm_id=None),
        User(id="user-inactive", email="inactive@firm-a.test", role="ASSOCIATE",
             firm_id=FIRM_A, is_active=False),
        User(id="user-intern", email="intern@firm-a.test", role="INTERN", firm_id=FIRM_A),
    ])
    await db_session.flush()

    for cid, (firm_id, assigned, reviewer) in CLIENT_OWNERS.items():
        db_session.add(Client(
            id=cid, firm_id=firm_id, name=cid.replace("-", " ").title(),
            assigned_to_id=assigned, reviewer_id=reviewer,
        ))
    await db_session.flush()

    for eid, (cid, status) in ENGAGEMENTS.items():
        db_session.add(Engagement(id=eid, client_id=cid, financial_year="2024-25", status=status))
    await db_session.flush()

    for did, (cid, eid, status) in DOCUMENTS.items():
        db_session.add(Document(id=did, title=did, client_id=cid, engagement_id=eid, status=status))
    await db_session.commit()
    return db_session


def auth_header(uid: str, email: str) -> dict:
    token = create_access_token(uid, email)
    return {"Authorization": f"Bearer {token}"}


def role_header(role: Role) -> dict:
    return auth_header(user_id(role), email_for(role))


def _override_db(session: AsyncSession):
    async def _get_db():
        yield session
    return _get_db


def committing_db(engine):
    """get_db on the test engine with the production commit / rollback behaviour."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    return _get_db


@pytest.fixture
def app(seeded: AsyncSession):
    application = create_app()
    application.dependency_overrides[get_db] = _override_db(seeded)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client_as(app):
    """Factory: `async with client_as(Role.PARTNER) as c:` or pass a headers dict."""

    @asynccontextmanager
    async def _client(who: Role | dict | None = None):
        if isinstance(who, Role):
            headers = role_header(who)
        else:
            headers = who or {}
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", headers=headers) as c:
            yield c

    return _client
