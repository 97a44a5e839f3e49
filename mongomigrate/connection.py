"""
Opens and validates the source and target MongoDB clients.
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.server_api import ServerApi

from mongomigrate.base import ConnectionConfig, DeploymentType
from mongomigrate.exceptions import MongoConnectionError

logger = logging.getLogger(__name__)

SERVER_SELECTION_TIMEOUT_MS = 5000


def build_client_options(config: ConnectionConfig, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
    """Driver keyword arguments for one deployment."""
    options: Dict[str, Any] = {'serverSelectionTimeoutMS': SERVER_SELECTION_TIMEOUT_MS}
    if config.deployment_type == DeploymentType.REPLICA_SET and config.replica_set:
        options['replicaset'] = config.replica_set
    if config.deployment_type == DeploymentType.ATLAS:
        options['server_api'] = ServerApi('1', strict=True, deprecation_errors=True)
    if timeout_ms:
        options['socketTimeoutMS'] = timeout_ms
    return options


class ConnectionManager:
    """Owns the source and target clients for the duration of a run."""

    def __init__(self, timeout_ms: Optional[int] = None,
                 client_factory: Optional[Callable[..., MongoClient]] = None):
        self.timeout_ms = timeout_ms
        self.client_factory = client_factory or MongoClient
        self.source_client: Optional[MongoClient] = None
        self.target_client: Optional[MongoClient] = None

    def open(self, config: ConnectionConfig, side: str = 'source') -> MongoClient:
        """
        Create a client and ping it.

        Args:
            config: connection settings
            side: 'source' or 'target', used in error messages

        Returns:
            a client that answered ping

        Raises:
            MongoConnectionError: the deployment could not be reached
        """
        client = None
        try:
            client = self.client_factory(config.uri, **build_client_options(config, self.timeout_ms))
            client.admin.command('ping')
        except PyMongoError as e:
            if client is not None:
                client.close()
            raise MongoConnectionError(side, str(e)) from e
        logger.info(f"Connected to {side} MongoDB ({config.deployment_type.value})")
        return client

    def connect(self, source: ConnectionConfig, target: ConnectionConfig) -> Tuple[MongoClient, MongoClient]:
        self.source_client = self.open(source, 'source')
        try:
            self.target_client = self.open(target, 'target')
        except MongoConnectionError:
            self.close()
            raise
        return self.source_client, self.target_client

    def close(self) -> None:
        for side in ('source_client', 'target_client'):
            client = getattr(self, side)
            if client is None:
                continue
            try:
                client.close()
            except PyMongoError as e:
                logger.warning(f"Error closing {side}: {e}")
            setattr(self, side, None)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
