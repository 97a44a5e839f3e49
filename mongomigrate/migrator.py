#!/usr/bin/env python3
"""
Migration engine: copies indexes and documents collection by collection
from a source client to a target client.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import BulkWriteError, PyMongoError

from mongomigrate.analyzer import Analyzer
from mongomigrate.base import (
    CollectionStats,
    DatabaseStats,
    MigrationOptions,
    MigrationProgress,
    MigrationStats,
    MigrationStatus,
)
from mongomigrate.exceptions import InsertError
from mongomigrate.index import LIST_INDEXES_FAILED, IndexManager

logger = logging.getLogger(__name__)

ProgressListener = Callable[[MigrationProgress], Any]


class Migrator:
    """
    Copies the databases selected by MigrationOptions.

    A single instance runs a single migration. stop() may be called from any
    thread; the run ends at the next database, collection or batch boundary.
    """

    def __init__(self, source_client: MongoClient, target_client: MongoClient,
                 options: Optional[MigrationOptions] = None,
                 analyzer: Optional[Analyzer] = None,
                 index_manager: Optional[IndexManager] = None):
        self.source_client = source_client
        self.target_client = target_client
        self.options = options or MigrationOptions()
        self.analyzer = analyzer or Analyzer()
        self.index_manager = index_manager or IndexManager()
        self.stats = MigrationStats()
        self.stopped = False
        self._lock = threading.RLock()
        self._listeners: List[ProgressListener] = []

    # listeners

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_progress(self, progress: MigrationProgress) -> None:
        with self._lock:
            for listener in list(self._listeners):
                try:
                    listener(progress.model_copy())
                except Exception as e:
                    logger.warning(f"Progress listener {listener!r} failed: {e}")

    # bookkeeping

    def _record_error(self, message: str) -> None:
        with self._lock:
            self.stats.errors.append(message)

    def _record_batch(self, migrated: int, failed: int = 0) -> None:
        with self._lock:
            self.stats.migrated_documents += migrated
            self.stats.failed_documents += failed

    def stop(self) -> None:
        logger.info("Stopping migration process...")
        self.stopped = True

    def should_migrate_collection(self, name: str) -> bool:
        if name.startswith('system.'):
            return False
        if self.options.collections:
            return name in self.options.collections
        if self.options.skip_collections:
            return name not in self.options.skip_collections
        return True

    # run

    def migrate(self) -> MigrationStats:
        """
        Run the migration to completion, stop or failure.

        Never raises: a fatal error is logged, appended to stats.errors and
        reported through stats.status == failed.
        """
        self.stats.start()
        logger.info("Starting migration process")
        try:
            databases = self.analyzer.analyze_databases(self.source_client, self.options.source_databases)

            self.stats.total_databases = len(databases)
            self.stats.total_documents = sum(db.total_documents for db in databases)
            self.stats.total_collections = sum(
                1 for db in databases for coll in db.collections if self.should_migrate_collection(coll.name)
            )
            logger.info(f"Will migrate {self.stats.total_documents} documents from "
                        f"{self.stats.total_collections} collections in {len(databases)} databases")

            if self.options.dry_run:
                logger.info("Dry run completed. No data was migrated.")
                self.stats.finish(MigrationStatus.COMPLETED)
                return self.stats

            if self.options.target_database and len(databases) > 1:
                logger.warning(f"{len(databases)} source databases will all be written to "
                               f"{self.options.target_database}")

            for db_stats in databases:
                if self.stopped:
                    break
                self.migrate_database(db_stats)

            self.stats.finish(MigrationStatus.STOPPED if self.stopped else MigrationStatus.COMPLETED)
            logger.info(f"Migration {self.stats.status.value} in {self.stats.elapsed_time_ms / 1000} seconds")
            logger.info(f"Migrated {self.stats.migrated_documents} of {self.stats.total_documents} documents")
            if self.stats.failed_documents > 0:
                logger.warning(f"Failed to migrate {self.stats.failed_documents} documents")
        except Exception as e:
            logger.exception(f"Migration failed: {e}")
            self._record_error(f"Migration failed: {e}")
            self.stats.finish(MigrationStatus.FAILED)

        return self.stats

    def migrate_database(self, db_stats: DatabaseStats) -> None:
        target_name = self.options.target_database or db_stats.name
        logger.info(f"Migrating database {db_stats.name} to {target_name}")
        source_db = self.source_client[db_stats.name]
        target_db = self.target_client[target_name]

        collections: List[CollectionStats] = []
        for coll_stats in db_stats.collections:
            if self.should_migrate_collection(coll_stats.name):
                collections.append(coll_stats)
            else:
                logger.info(f"Skipping collection {coll_stats.name}")

        if self.options.concurrency > 1 and len(collections) > 1:
            workers = min(self.options.concurrency, len(collections))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(self.migrate_collection, source_db, target_db, c.name, c.count): c.name
                    for c in collections
                }
                for future in as_completed(futures):
                    try:
                        future.result()
                    except Exception:
                        # driver failures outside index and insert handling fail the run
                        logger.error(f"Collection {futures[future]} failed, cancelling remaining collections")
                        self.stopped = True
                        pool.shutdown(wait=True, cancel_futures=True)
                        raise
            return

        for coll_stats in collections:
            if self.stopped:
                break
            self.migrate_collection(source_db, target_db, coll_stats.name, coll_stats.count)

    def migrate_collection(self, source_db: Database, target_db: Database,
                           name: str, total_documents: int) -> None:
        """
        Copy one collection: indexes, optional target wipe, then documents in batches.

        Args:
            source_db: source database handle
            target_db: target database handle
            name: collection name, the same on both sides
            total_documents: source count from analysis, used for progress
        """
        if self.stopped:
            return
        source = source_db[name]
        target = target_db[name]
        logger.info(f"Migrating collection {source.full_name} to {target.full_name}")

        self.copy_indexes(source, target)

        if self.options.drop_target:
            target.delete_many({})
            logger.info(f"Dropped existing data from target collection {target.full_name}")

        batch_size = self.options.batch_size
        processed = 0
        with source.find({}, batch_size=batch_size) as cursor:
            while not self.stopped:
                batch = self._next_batch(cursor, batch_size)
                if not batch:
                    break
                try:
                    self._record_batch(self._insert_batch(target, batch))
                except InsertError as e:
                    logger.error(f"Error migrating batch from {source.full_name}: {e}")
                    self._record_batch(e.inserted_count or 0, e.failed_count)
                    self._record_error(f"Failed to insert {e.failed_count} documents in "
                                       f"{source.full_name}: {e}")
                processed += len(batch)
                self._emit_progress(MigrationProgress(
                    database=source_db.name,
                    collection=name,
                    total_documents=total_documents,
                    processed_documents=processed,
                ))

        logger.info(f"Completed migration of {processed} documents from {source.full_name}")

    def copy_indexes(self, source: Collection, target: Collection) -> Dict[str, Any]:
        result = self.index_manager.copy_indexes(source, target)
        if result['total_indexes']:
            logger.info(f"Migrated {result['created_indexes']} of {result['total_indexes']} indexes "
                        f"from {source.full_name} to {target.full_name}")
        for error in result['errors']:
            if error.index_name == LIST_INDEXES_FAILED:
                self._record_error(f"Error migrating indexes for {source.full_name}: {error.reason}")
                continue
            self._record_error(f"Failed to create index {error.index_name} on {target.full_name}: {error.reason}")
        return result

    def _next_batch(self, cursor, batch_size: int) -> List[Dict[str, Any]]:
        batch = []
        while len(batch) < batch_size and not self.stopped:
            doc = next(cursor, None)
            if doc is None:
                break
            batch.append(doc)
        return batch

    @staticmethod
    def _insert_batch(target: Collection, batch: List[Dict[str, Any]]) -> int:
        """
        Insert a batch and return the number of documents written.

        Raises:
            InsertError: with the server-reported inserted count when one is available
        """
        try:
            if len(batch) == 1:
                target.insert_one(batch[0])
                return 1
            result = target.insert_many(batch, ordered=False)
            return len(result.inserted_ids)
        except BulkWriteError as e:
            raise InsertError(str(e), e.details.get('nInserted'), len(batch)) from e
        except PyMongoError as e:
            raise InsertError(str(e), None, len(batch)) from e
