#!/usr/bin/env python3
"""
Post-migration verification

Compares every collection of the source databases with the target:
- collection existence
- document count and data size
- index names
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from mongomigrate.analyzer import SYSTEM_DATABASES

logger = logging.getLogger(__name__)


class DataComparator:
    """Source/target comparison report"""

    def __init__(self, source_client: MongoClient, target_client: MongoClient):
        self.source_client = source_client
        self.target_client = target_client

    def get_databases(self) -> List[str]:
        return [name for name in self.source_client.list_database_names() if name not in SYSTEM_DATABASES]

    @staticmethod
    def _get_collection_stats(client: MongoClient, database: str, collection: str) -> Dict[str, Any]:
        try:
            stats = client[database].command('collStats', collection)
            return {
                'count': stats.get('count', 0),
                'size': stats.get('size', 0),
                'nindexes': stats.get('nindexes', 0),
            }
        except PyMongoError as e:
            return {'error': str(e)}

    @staticmethod
    def _get_index_names(client: MongoClient, database: str, collection: str) -> set:
        return {idx['name'] for idx in client[database][collection].list_indexes() if idx['name'] != '_id_'}

    def compare_collection(self, source_db: str, target_db: str, collection: str,
                           target_collections: List[str]) -> Dict[str, Any]:
        """Compare one collection and list its issues."""
        result = {
            'collection': collection,
            'exists_in_target': collection in target_collections,
            'source_stats': {},
            'target_stats': {},
            'count_diff': 0,
            'size_diff': 0,
            'issues': [],
        }

        if not result['exists_in_target']:
            result['issues'].append("Collection missing in target database")
            return result

        try:
            source_stats = self._get_collection_stats(self.source_client, source_db, collection)
            target_stats = self._get_collection_stats(self.target_client, target_db, collection)
            result['source_stats'] = source_stats
            result['target_stats'] = target_stats

            for side, stats in (('source', source_stats), ('target', target_stats)):
                if 'error' in stats:
                    result['issues'].append(f"collStats failed on {side}: {stats['error']}")
            if result['issues']:
                return result

            result['count_diff'] = source_stats['count'] - target_stats['count']
            result['size_diff'] = source_stats['size'] - target_stats['size']
            if result['count_diff'] != 0:
                result['issues'].append(f"Document count mismatch: source({source_stats['count']}) "
                                        f"vs target({target_stats['count']})")

            source_indexes = self._get_index_names(self.source_client, source_db, collection)
            target_indexes = self._get_index_names(self.target_client, target_db, collection)
            missing = sorted(source_indexes - target_indexes)
            extra = sorted(target_indexes - source_indexes)
            if missing:
                result['issues'].append(f"Missing indexes: {', '.join(missing)}")
            if extra:
                result['issues'].append(f"Extra indexes: {', '.join(extra)}")

        except PyMongoError as e:
            result['issues'].append(f"Comparison failed: {e}")

        return result

    def compare_databases(self, database_names: Optional[List[str]] = None,
                          target_database: Optional[str] = None) -> Dict[str, Any]:
        """
        Compare source databases with the target.

        Args:
            database_names: source databases, every non-system database when empty
            target_database: target database name override, as used by the migration

        Returns:
            {'summary': {...}, 'databases': {name: {'collections': {...}, 'summary': {...}}}}
        """
        databases = database_names or self.get_databases()
        results = {
            'summary': {
                'total_databases': len(databases),
                'checked_databases': 0,
                'total_collections': 0,
                'matching_collections': 0,
                'mismatched_collections': 0,
                'issues': [],
            },
            'databases': {},
        }

        for database in databases:
            target_name = target_database or database
            logger.info(f"Comparing database {database} with {target_name}")
            db_result = {
                'target_database': target_name,
                'collections': {},
                'summary': {
                    'total_collections': 0,
                    'matching_collections': 0,
                    'mismatched_collections': 0,
                    'issues': [],
                },
            }

            try:
                source_collections = [c for c in self.source_client[database].list_collection_names()
                                      if not c.startswith('system.')]
                target_collections = self.target_client[target_name].list_collection_names()
            except PyMongoError as e:
                db_result['summary']['issues'].append(f"Database comparison failed: {e}")
                results['summary']['issues'].append(f"Database {database} comparison failed: {e}")
                results['databases'][database] = db_result
                continue

            for collection in sorted(source_collections):
                coll_result = self.compare_collection(database, target_name, collection, target_collections)
                db_result['collections'][collection] = coll_result
                db_result['summary']['total_collections'] += 1
                key = 'mismatched_collections' if coll_result['issues'] else 'matching_collections'
                db_result['summary'][key] += 1
                results['summary'][key] += 1

            results['summary']['total_collections'] += db_result['summary']['total_collections']
            results['summary']['checked_databases'] += 1
            results['databases'][database] = db_result

        return results

    @staticmethod
    def has_mismatches(results: Dict[str, Any]) -> bool:
        summary = results['summary']
        return summary['mismatched_collections'] > 0 or bool(summary['issues'])

    @staticmethod
    def print_results(results: Dict[str, Any]) -> None:
        print("=" * 80)
        print("MongoDB verification report")
        print("=" * 80)
        print(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("")

        summary = results['summary']
        print("📊 Summary:")
        print(f"   Databases: {summary['total_databases']}")
        print(f"   Checked databases: {summary['checked_databases']}")
        print(f"   Collections: {summary['total_collections']}")
        print(f"   Matching collections: {summary['matching_collections']}")
        print(f"   Mismatched collections: {summary['mismatched_collections']}")
        print("")

        for db_name, db_result in results['databases'].items():
            print(f"🗄️ Database: {db_name} -> {db_result['target_database']}")
            print("-" * 40)
            for issue in db_result['summary']['issues']:
                print(f"   ❌ {issue}")

            mismatched = [(name, r['issues']) for name, r in db_result['collections'].items() if r['issues']]
            if mismatched:
                print("   ⚠️  Mismatched collections:")
                for collection, issues in mismatched:
                    print(f"      📂 {collection}:")
                    for issue in issues:
                        print(f"         - {issue}")
            else:
                print("   ✅ All collections match")
            print("")
