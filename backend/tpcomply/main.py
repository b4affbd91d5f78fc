import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from tpcomply.api.audit import router as audit_router
from tpcomply.api.auth import router as auth_router
from tpcomply.api.clients import router as clients_router
from tpcomply.api.errors import ERROR_RESPONSES, register_error_handlers
from tpcomply.api.workflow import router as workflow_router
from tpcomply.auth.permissions import PERMISSION_TABLE, PermissionMatrix
from tpcomply.config import settings
from tpcomply.database import engine
from tpcomply.middleware.logging_config import configure_json_logging
from tpcomply.middleware.request_context import RequestContextMiddleware
from tpcomply.workflow.engine import WorkflowEngine
from tpcomply.workflow.transitions import WORKFLOW_DEFINITIONS

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: verify DB connection
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    yield
    await engine.dispose()


def create_app(
    matrix: PermissionMatrix | None = None,
    workflow_engine: WorkflowEngine | None = None,
) -> FastAPI:
    app = FastAPI(
        title="TP Comply",
        description="Access control and workflow core for transfer-pricing practices",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Immutable configuration, built once per process
    app.state.permission_matrix = matrix or PermissionMatrix(PERMISSION_TABLE)
    app.state.workflow_engine = workflow_engine or WorkflowEngine(WORKFLOW_DEFINITIONS)

    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_error_handlers(app)

    app.include_router(auth_router, responses=ERROR_RESPONSES)
    app.include_router(clients_router, responses=ERROR_RESPONSES)
    app.include_router(workflow_router, responses=ERROR_RESPONSES)
    app.include_router(audit_router, responses=ERROR_RESPONSES)

    @app.get("/api/health")
    async def health_check():
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            database = {"status": "connected"}
        except Exception as exc:
            logger.warning("Health check could not reach the database: %s", exc)
            database = {"status": "disconnected", "error": str(exc)}

        return {
            "status": "healthy" if database["status"] == "connected" else "unhealthy",
            "environment": settings.environment,
            "components": {"database": database},
        }

    return app


if settings.environment != "test":
    configure_json_logging(settings.log_level)

app = create_app()
