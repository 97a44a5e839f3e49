#!/usr/bin/env python3
"""
Index copying between a source and a target collection.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from mongomigrate.exceptions import CreateIndexError

logger = logging.getLogger(__name__)

# fields of a listIndexes entry that are not create_index options
NON_OPTION_FIELDS = ('v', 'ns', 'key')

# index name reported when listIndexes on the source fails
LIST_INDEXES_FAILED = '*'


def index_options(index: Dict[str, Any]) -> Dict[str, Any]:
    """Options for create_index taken from a listIndexes entry."""
    return {k: v for k, v in index.items() if k not in NON_OPTION_FIELDS and v is not None}


class IndexManager:
    """Reads index definitions from a source collection and recreates them on a target."""

    def copy_indexes(self, source: Collection, target: Collection) -> Dict[str, Any]:
        """
        Recreate every non-_id index of source on target.

        Args:
            source: source collection
            target: target collection

        Returns:
            dict with 'total_indexes', 'created_indexes' and 'errors'
            (one CreateIndexError per failed index, or a single one named '*'
            when the source indexes could not be listed)
        """
        created = 0
        errors: List[CreateIndexError] = []
        try:
            indexes = [idx for idx in source.list_indexes() if idx['name'] != '_id_']
        except PyMongoError as e:
            logger.warning(f"Failed to list indexes of {source.full_name}: {e}")
            return {
                'total_indexes': 0,
                'created_indexes': 0,
                'errors': [CreateIndexError(LIST_INDEXES_FAILED, str(e))],
            }

        for index in indexes:
            error = self.create_index(target, index)
            if error is None:
                created += 1
            else:
                errors.append(error)

        return {
            'total_indexes': len(indexes),
            'created_indexes': created,
            'errors': errors,
        }

    def create_index(self, target: Collection, index: Dict[str, Any]) -> Optional[CreateIndexError]:
        name = index['name']
        try:
            target.create_index(list(index['key'].items()), **index_options(index))
            logger.debug(f"Created index {name} on {target.full_name}")
            return None
        except PyMongoError as e:
            logger.warning(f"Failed to create index {name} on {target.full_name}: {e}")
            return CreateIndexError(name, str(e))
