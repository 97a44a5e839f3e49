"""Exception handlers that shape error responses the way the web UI reads them."""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from mongomigrate.exceptions import MigrationToolError

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """``{error: {message, status}}`` for unknown routes and other HTTP errors."""
    if exc.status_code == 404:
        message = f"Not Found - {request.url.path}"
    else:
        message = str(exc.detail)
    logger.warning(f"[Error] {exc.status_code} - {message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"message": message, "status": exc.status_code}},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Invalid request bodies are a 400 with the list of field errors."""
    return JSONResponse(status_code=400, content={"errors": jsonable_encoder(exc.errors())})


async def migration_tool_exception_handler(request: Request, exc: MigrationToolError) -> JSONResponse:
    logger.error(f"[Error] 500 - {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Migration tool error", "error": str(exc)},
    )
