from pathlib import Path
from typing import Callable

from fastapi import Request

from mongomigrate.connection import ConnectionManager

from .runner import MigrationRunner
from .store import MigrationStore


def get_store(request: Request) -> MigrationStore:
    return request.app.state.store


def get_runner(request: Request) -> MigrationRunner:
    return request.app.state.runner


def get_config_path(request: Request) -> Path:
    return request.app.state.config_path


def get_connection_factory(request: Request) -> Callable[..., ConnectionManager]:
    return request.app.state.connection_factory
