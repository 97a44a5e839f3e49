"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from mongomigrate import __version__
from mongomigrate.connection import ConnectionManager
from mongomigrate.exceptions import MigrationToolError

from .exception_handlers import (
    http_exception_handler,
    migration_tool_exception_handler,
    validation_exception_handler,
)
from .routers import analyze, config, connection, migrate
from .runner import MigrationRunner
from .store import InMemoryMigrationStore, MigrationStore

API_PREFIX = "/api"
CONFIG_PATH_VARIABLE = "MONGOMIGRATE_CONFIG_JSON"
DEFAULT_CONFIG_PATH = "config.json"


def create_app(store: Optional[MigrationStore] = None,
               runner: Optional[MigrationRunner] = None,
               config_path: Optional[Union[str, Path]] = None,
               connection_factory: Optional[Callable[..., ConnectionManager]] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: migration records, in memory by default.
        runner: background migration runner, built on ``store`` by default.
        config_path: JSON file behind ``/api/config``.
        connection_factory: builds ConnectionManager instances, swapped out in tests.

    Returns:
        Configured FastAPI application instance.
    """
    store = store or InMemoryMigrationStore()
    connection_factory = connection_factory or ConnectionManager
    runner = runner or MigrationRunner(store, connection_factory=connection_factory)
    config_path = Path(config_path or os.environ.get(CONFIG_PATH_VARIABLE, DEFAULT_CONFIG_PATH))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        runner.shutdown(wait=False)

    app = FastAPI(
        title="MongoDB Migration API",
        description="Analyze MongoDB deployments and migrate data between them",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.runner = runner
    app.state.config_path = config_path
    app.state.connection_factory = connection_factory

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(MigrationToolError, migration_tool_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(analyze.router, prefix=API_PREFIX)
    app.include_router(config.router, prefix=API_PREFIX)
    app.include_router(connection.router, prefix=API_PREFIX)
    app.include_router(migrate.router, prefix=API_PREFIX)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app
