"""
Storage for migrations started through the REST API.

Records live for the lifetime of the process; nothing is persisted.
"""
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import Field

from mongomigrate.base import CamelModel, MigrationProgress, MigrationStats


class MigrationRecord(CamelModel):
    """Stats, latest progress and the stop flag of one API migration."""
    migration_id: str
    stats: MigrationStats
    progress: MigrationProgress = Field(
        default_factory=lambda: MigrationProgress(database='', collection='')
    )
    stop_requested: bool = False

    def status_payload(self) -> dict:
        payload = self.stats.to_json_dict()
        payload['progress'] = self.progress.to_json_dict()
        # nothing has been copied yet
        if not self.progress.collection:
            payload['progress']['percentage'] = 0
        return payload


class MigrationStore(ABC):
    """
    Abstract store of migration records.

    Implementations must be safe to call from the request handlers and the
    background migration threads at the same time.
    """

    @abstractmethod
    def save(self, record: MigrationRecord) -> None:
        pass

    @abstractmethod
    def get(self, migration_id: str) -> Optional[MigrationRecord]:
        pass

    @abstractmethod
    def list(self) -> List[MigrationRecord]:
        pass

    @abstractmethod
    def delete(self, migration_id: str) -> bool:
        pass


class InMemoryMigrationStore(MigrationStore):

    def __init__(self):
        self._records: Dict[str, MigrationRecord] = {}
        self._lock = threading.Lock()

    def save(self, record: MigrationRecord) -> None:
        with self._lock:
            self._records[record.migration_id] = record

    def get(self, migration_id: str) -> Optional[MigrationRecord]:
        with self._lock:
            return self._records.get(migration_id)

    def list(self) -> List[MigrationRecord]:
        with self._lock:
            return list(self._records.values())

    def delete(self, migration_id: str) -> bool:
        with self._lock:
            return self._records.pop(migration_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
