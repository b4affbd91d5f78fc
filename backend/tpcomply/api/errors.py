"""HTTP binding for the access/workflow error taxonomy."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tpcomply.auth.errors import AccessError, ErrorKind
from tpcomply.schemas.schemas import ErrorResponse

logger = logging.getLogger(__name__)

STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.ACCOUNT_NOT_FOUND: 401,
    ErrorKind.NO_FIRM_ASSIGNED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 422,
    ErrorKind.TRANSITION_NOT_ALLOWED_FOR_ROLE: 403,
    ErrorKind.CONDITION_NOT_MET: 422,
    ErrorKind.RESOLUTION_FAILURE: 500,
}

# Documented error bodies for every router; 422 stays with request validation
ERROR_RESPONSES: dict[int | str, dict] = {
    code: {"model": ErrorResponse} for code in sorted(set(STATUS_CODES.values())) if code != 422
}


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    status_code = STATUS_CODES.get(exc.kind, 500)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=exc.kind.value, detail=exc.message).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessError, access_error_handler)
