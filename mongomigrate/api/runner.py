"""
Runs API migrations on background threads.
"""
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional

from mongomigrate.base import (
    ConnectionConfig,
    MigrationOptions,
    MigrationProgress,
    MigrationStats,
    MigrationStatus,
)
from mongomigrate.connection import ConnectionManager
from mongomigrate.migrator import Migrator

from .store import MigrationRecord, MigrationStore

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    Starts migrations, keeps the running Migrator handles and forwards stop requests.

    Args:
        store: where migration records are kept
        connection_factory: builds a ConnectionManager from a timeout_ms keyword
        max_workers: migrations that may run at the same time
    """

    def __init__(self, store: MigrationStore,
                 connection_factory: Optional[Callable[..., ConnectionManager]] = None,
                 max_workers: int = 4):
        self.store = store
        self.connection_factory = connection_factory or ConnectionManager
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='migration')
        self._migrators: Dict[str, Migrator] = {}
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def start(self, source: ConnectionConfig, target: ConnectionConfig, options: MigrationOptions) -> str:
        migration_id = str(uuid.uuid4())
        record = MigrationRecord(migration_id=migration_id, stats=MigrationStats(migration_id=migration_id))
        self.store.save(record)
        future = self._executor.submit(self._run, record, source, target, options)
        with self._lock:
            self._futures[migration_id] = future
        future.add_done_callback(lambda _: self._release(migration_id))
        logger.info(f"Migration {migration_id} started")
        return migration_id

    def _release(self, migration_id: str) -> None:
        with self._lock:
            self._futures.pop(migration_id, None)

    def _run(self, record: MigrationRecord, source: ConnectionConfig, target: ConnectionConfig,
             options: MigrationOptions) -> None:
        migration_id = record.migration_id
        try:
            with self.connection_factory(timeout_ms=options.timeout_ms) as connections:
                source_client, target_client = connections.connect(source, target)

                migrator = Migrator(source_client, target_client, options)
                migrator.stats = record.stats

                def on_progress(progress: MigrationProgress) -> None:
                    record.progress = progress

                migrator.add_progress_listener(on_progress)
                with self._lock:
                    self._migrators[migration_id] = migrator
                if record.stop_requested:
                    migrator.stop()

                migrator.migrate()
        except Exception as e:
            logger.exception(f"Migration {migration_id} failed: {e}")
            record.stats.errors.append(str(e))
            record.stats.finish(MigrationStatus.FAILED)
        finally:
            with self._lock:
                self._migrators.pop(migration_id, None)
            self.store.save(record)
            logger.info(f"Migration {migration_id} finished with status {record.stats.status.value}")

    def stop(self, migration_id: str) -> bool:
        """Request a cooperative stop. Returns False when the migration is unknown."""
        record = self.store.get(migration_id)
        if record is None:
            return False
        record.stop_requested = True
        with self._lock:
            migrator = self._migrators.get(migration_id)
        if migrator is not None:
            migrator.stop()
        return True

    def wait(self, migration_id: str, timeout: Optional[float] = None) -> None:
        """Block until a background migration has finished."""
        with self._lock:
            future = self._futures.get(migration_id)
        if future is not None:
            future.result(timeout=timeout)
            self._release(migration_id)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            migrators = list(self._migrators.values())
        for migrator in migrators:
            migrator.stop()
        self._executor.shutdown(wait=wait)
