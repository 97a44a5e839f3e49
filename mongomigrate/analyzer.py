"""
Database analysis and source/target compatibility checks.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from mongomigrate.base import CollectionStats, DatabaseStats
from mongomigrate.exceptions import AnalysisError

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = ('admin', 'local', 'config')


def _plain(value: Any) -> Any:
    """SON and nested mappings from the driver as plain dicts."""
    if hasattr(value, 'items'):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class Analyzer:

    def list_databases(self, client: MongoClient) -> List[str]:
        return [name for name in client.list_database_names() if name not in SYSTEM_DATABASES]

    def analyze_collection(self, db, name: str) -> CollectionStats:
        coll = db[name]
        count = coll.count_documents({})
        size = db.command('collStats', name).get('size', 0)
        indexes = [_plain(idx) for idx in coll.list_indexes()]
        return CollectionStats(name=name, count=count, size=size, indexes=indexes)

    def analyze_databases(self, client: MongoClient,
                          database_names: Optional[List[str]] = None) -> List[DatabaseStats]:
        """
        Collect per-collection document counts, sizes and index definitions.

        Args:
            client: source client
            database_names: databases to inspect, every non-system database when empty

        Returns:
            one DatabaseStats per database, in listing order

        Raises:
            AnalysisError: any driver call failed
        """
        try:
            names = database_names or self.list_databases(client)
            results = []
            for db_name in names:
                db = client[db_name]
                collections = []
                for info in db.list_collections():
                    if info.get('type', 'collection') != 'collection':
                        logger.debug(f"Skipping {info.get('type')} {db_name}.{info['name']}")
                        continue
                    collections.append(self.analyze_collection(db, info['name']))
                stats = DatabaseStats(name=db_name, collections=collections)
                logger.info(f"Analyzed database {db_name}: {len(collections)} collections, "
                            f"{stats.total_documents} documents")
                results.append(stats)
            return results
        except PyMongoError as e:
            logger.error(f"Error analyzing databases: {e}")
            raise AnalysisError(f"Error analyzing databases: {e}") from e

    @staticmethod
    def _version(client: MongoClient) -> Tuple[List[int], str]:
        info = client.admin.command('buildInfo')
        version_array = list(info.get('versionArray') or [])
        version = info.get('version') or '.'.join(str(v) for v in version_array[:3])
        return version_array, version

    @staticmethod
    def _storage_engine(client: MongoClient) -> Optional[str]:
        status = client.admin.command('serverStatus')
        engine = status.get('storageEngine') or {}
        return engine.get('name')

    def validate_compatibility(self, source_client: MongoClient,
                               target_client: MongoClient) -> Tuple[bool, List[str]]:
        """
        Compare server versions and storage engines.

        Returns:
            (compatible, issues), compatible is True exactly when issues is empty
        """
        issues: List[str] = []
        try:
            source_array, source_version = self._version(source_client)
            target_array, target_version = self._version(target_client)

            if source_array and target_array:
                if target_array[0] < source_array[0]:
                    issues.append(f"Target MongoDB version ({target_version}) is older than source "
                                  f"({source_version}). This may cause compatibility issues.")
                elif (target_array[0] == source_array[0] and len(target_array) > 1
                      and len(source_array) > 1 and target_array[1] < source_array[1]):
                    logger.warning(f"Target MongoDB minor version ({target_version}) is older than "
                                   f"source ({source_version}). Some features may not be available.")

            source_engine = self._storage_engine(source_client)
            target_engine = self._storage_engine(target_client)
            if source_engine and target_engine and source_engine != target_engine:
                issues.append(f"Different storage engines detected: source uses {source_engine}, "
                              f"target uses {target_engine}. Some features may not be compatible.")
        except PyMongoError as e:
            logger.error(f"Error validating compatibility: {e}")
            issues.append(f"Error validating compatibility: {e}")

        return not issues, issues


def summarize(databases: List[DatabaseStats]) -> Dict[str, int]:
    return {
        'databases': len(databases),
        'collections': sum(len(db.collections) for db in databases),
        'documents': sum(db.total_documents for db in databases),
        'size': sum(db.total_size for db in databases),
    }
