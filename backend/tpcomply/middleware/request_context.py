"""
Request scope middleware.

Each request gets a RequestScope holding its X-Request-ID and, once the
authentication gate has resolved the caller, the caller's user and firm.
The scope lives in a ContextVar so any log line emitted while serving the
request can be tagged with the tenant it ran for.
"""

import time
import logging
from contextvars import ContextVar
from dataclasses import dataclass
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


@dataclass
class RequestScope:
    request_id: str
    user_id: str | None = None
    firm_id: str | None = None


# The scope object is mutated in place: the endpoint runs in a copied
# context, so rebinding the var there would not reach the access log.
_scope_var: ContextVar[RequestScope | None] = ContextVar("request_scope", default=None)


def current_scope() -> RequestScope | None:
    return _scope_var.get()


def get_request_id() -> str:
    scope = _scope_var.get()
    return scope.request_id if scope else ""


def bind_caller(user_id: str, firm_id: str | None) -> None:
    """Attach the resolved caller to the current request, if there is one."""
    scope = _scope_var.get()
    if scope is not None:
        scope.user_id = user_id
        scope.firm_id = firm_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        scope = RequestScope(request_id=request.headers.get("X-Request-ID") or uuid4().hex)
        token = _scope_var.set(scope)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(
                "%s %s %s %.0fms firm=%s user=%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                scope.firm_id or "-",
                scope.user_id or "-",
                extra={"duration_ms": duration_ms, "firm_id": scope.firm_id, "user_id": scope.user_id},
            )
        finally:
            _scope_var.reset(token)

        response.headers["X-Request-ID"] = scope.request_id
        return response
