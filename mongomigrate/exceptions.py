"""
Error types raised by the migration tool.

Connection and analysis errors abort a run. Index and insert errors are
recorded in the migration stats and the run carries on.
"""
from typing import Optional


class MigrationToolError(Exception):
    """Base class for all errors raised by mongomigrate."""


class ConfigError(MigrationToolError):
    """A configuration file holds a value that cannot be used."""


class MongoConnectionError(MigrationToolError):

    def __init__(self, side: str, message: str):
        self.side = side
        super().__init__(f"Failed to connect to {side} MongoDB: {message}")


class AnalysisError(MigrationToolError):
    """Listing databases, collections or their statistics failed."""


class CreateIndexError(MigrationToolError):

    def __init__(self, index_name: str, message: str):
        self.index_name = index_name
        self.reason = message
        super().__init__(f"Failed to create index {index_name}: {message}")


class InsertError(MigrationToolError):
    """
    A batch insert failed, fully or partially.

    Args:
        message: driver error text
        inserted_count: documents the server reports as written, None when unknown
        batch_size: documents in the failed batch
    """

    def __init__(self, message: str, inserted_count: Optional[int], batch_size: int):
        self.inserted_count = inserted_count
        self.batch_size = batch_size
        super().__init__(message)

    @property
    def failed_count(self) -> int:
        if self.inserted_count is None:
            return self.batch_size
        return self.batch_size - self.inserted_count
