"""
Data model shared by the CLI, the REST API and the migration engine.

Attributes are snake_case in Python and camelCase on the wire, models accept
either spelling on input.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import json_util
from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_document(self) -> Dict[str, Any]:
        """camelCase dict that keeps BSON values (index keys, collations) as the driver returned them."""
        return self.model_dump(by_alias=True)


class DeploymentType(str, Enum):
    STANDALONE = "standalone"
    REPLICA_SET = "replicaSet"
    SHARDED = "sharded"
    ATLAS = "atlas"


class MigrationStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class ConnectionConfig(CamelModel):
    """How to reach one MongoDB deployment."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    uri: str = Field(min_length=1)
    deployment_type: DeploymentType = DeploymentType.STANDALONE
    replica_set: Optional[str] = None
    api_key: Optional[str] = None
    project_id: Optional[str] = None


class MigrationOptions(CamelModel):
    """What to copy and how."""
    source_databases: Optional[List[str]] = None
    target_database: Optional[str] = None
    collections: Optional[List[str]] = None
    skip_collections: Optional[List[str]] = None
    drop_target: bool = False
    batch_size: int = Field(default=1000, gt=0)
    concurrency: int = Field(default=5, gt=0)
    timeout_ms: int = Field(default=30000, gt=0)
    dry_run: bool = False


class CollectionStats(CamelModel):
    name: str
    count: int = 0
    size: int = 0
    indexes: List[Dict[str, Any]] = Field(default_factory=list)


class DatabaseStats(CamelModel):
    name: str
    collections: List[CollectionStats] = Field(default_factory=list)

    @computed_field
    @property
    def total_size(self) -> int:
        return sum(c.size for c in self.collections)

    @computed_field
    @property
    def total_documents(self) -> int:
        return sum(c.count for c in self.collections)


class MigrationProgress(CamelModel):
    """Progress of the collection currently being copied."""
    database: str
    collection: str
    total_documents: int = 0
    processed_documents: int = 0

    @computed_field
    @property
    def percentage(self) -> int:
        if self.total_documents <= 0:
            return 100
        return round(self.processed_documents / self.total_documents * 100)


class MigrationStats(CamelModel):
    """Counters for one migration run."""
    migration_id: Optional[str] = None
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    elapsed_time_ms: int = 0
    total_databases: int = 0
    total_collections: int = 0
    total_documents: int = 0
    migrated_documents: int = 0
    failed_documents: int = 0
    errors: List[str] = Field(default_factory=list)
    status: MigrationStatus = MigrationStatus.RUNNING

    def start(self) -> None:
        self.start_time = datetime.now()
        self.end_time = None
        self.elapsed_time_ms = 0
        self.status = MigrationStatus.RUNNING

    def finish(self, status: MigrationStatus) -> None:
        self.end_time = datetime.now()
        self.elapsed_time_ms = int((self.end_time - self.start_time).total_seconds() * 1000)
        self.status = status



def dump_analysis(databases: List[DatabaseStats]) -> str:
    """Analysis results as indented extended JSON."""
    return json_util.dumps([db.to_document() for db in databases], indent=2)
