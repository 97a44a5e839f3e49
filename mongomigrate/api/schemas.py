"""Request bodies of the REST API."""
from typing import List, Optional

from pydantic import Field

from mongomigrate.base import CamelModel, ConnectionConfig, MigrationOptions


class AnalyzeRequest(CamelModel):
    source: ConnectionConfig
    databases: Optional[List[str]] = None


class MigrationRequest(CamelModel):
    source: ConnectionConfig
    target: ConnectionConfig
    options: MigrationOptions = Field(default_factory=MigrationOptions)
