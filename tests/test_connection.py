import pytest
from pymongo.server_api import ServerApi

from mongomigrate.base import ConnectionConfig
from mongomigrate.connection import ConnectionManager, build_client_options
from mongomigrate.exceptions import MongoConnectionError


def test_standalone_options():
    options = build_client_options(ConnectionConfig(uri='mongodb://a'))
    assert options == {'serverSelectionTimeoutMS': 5000}


def test_replica_set_options():
    config = ConnectionConfig(uri='mongodb://a', deployment_type='replicaSet', replica_set='rs0')
    assert build_client_options(config)['replicaset'] == 'rs0'


def test_replica_set_name_ignored_for_other_types():
    config = ConnectionConfig(uri='mongodb://a', deployment_type='sharded', replica_set='rs0')
    assert 'replicaset' not in build_client_options(config)


def test_atlas_uses_stable_api():
    options = build_client_options(ConnectionConfig(uri='mongodb+srv://a', deploymentType='atlas'))
    assert isinstance(options['server_api'], ServerApi)


def test_timeout_sets_socket_timeout():
    options = build_client_options(ConnectionConfig(uri='mongodb://a'), timeout_ms=30000)
    assert options['socketTimeoutMS'] == 30000


def test_connect_pings_both(registry, source_config, target_config, source_client, target_client):
    manager = ConnectionManager(client_factory=registry)

    clients = manager.connect(source_config, target_config)

    assert clients == (source_client, target_client)
    assert [call['uri'] for call in registry.calls] == [source_config.uri, target_config.uri]


def test_target_failure_closes_source(registry, source_config, target_config, source_client, target_client):
    target_client.ping_error = 'timed out'
    manager = ConnectionManager(client_factory=registry)

    with pytest.raises(MongoConnectionError) as info:
        manager.connect(source_config, target_config)

    assert info.value.side == 'target'
    assert source_client.closed
    assert target_client.closed
    assert manager.source_client is None


def test_source_failure(registry, source_config, target_config, source_client):
    source_client.ping_error = 'no servers'
    with pytest.raises(MongoConnectionError, match='source'):
        ConnectionManager(client_factory=registry).connect(source_config, target_config)
    assert len(registry.calls) == 1


def test_close_is_idempotent(registry, source_config, target_config, source_client):
    with ConnectionManager(client_factory=registry) as manager:
        manager.connect(source_config, target_config)
        manager.close()
        manager.close()
    assert source_client.closed
    assert manager.target_client is None


def test_close_without_connect():
    ConnectionManager().close()
