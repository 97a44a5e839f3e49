import threading

import pytest
from fastapi.testclient import TestClient

from mongomigrate.api import create_app
from mongomigrate.api.runner import MigrationRunner
from mongomigrate.api.store import InMemoryMigrationStore, MigrationRecord
from mongomigrate.base import MigrationStats
from mongomigrate.connection import ConnectionManager
from tests.conftest import SOURCE_URI, TARGET_URI


@pytest.fixture
def gate():
    event = threading.Event()
    event.set()
    return event


@pytest.fixture
def store():
    return InMemoryMigrationStore()


@pytest.fixture
def runner(store, registry, gate):
    def connection_factory(**kwargs):
        gate.wait(5)
        return ConnectionManager(client_factory=registry, **kwargs)

    return MigrationRunner(store, connection_factory=connection_factory, max_workers=2)


@pytest.fixture
def api(tmp_path, store, runner, registry):
    app = create_app(
        store=store,
        runner=runner,
        config_path=tmp_path / 'config.json',
        connection_factory=lambda **kwargs: ConnectionManager(client_factory=registry, **kwargs),
    )
    with TestClient(app) as client:
        yield client


def migration_body(**options):
    return {
        'source': {'uri': SOURCE_URI, 'deploymentType': 'standalone'},
        'target': {'uri': TARGET_URI, 'deploymentType': 'standalone'},
        'options': {'batchSize': 1000, 'concurrency': 1, **options},
    }


def test_start_and_poll_migration(api, runner, source_client, target_client):
    source_client.seed('shop', 'orders', 2500)

    response = api.post('/api/migrate/start', json=migration_body())
    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['message'] == 'Migration started'

    runner.wait(body['migrationId'], timeout=10)
    status = api.get(f"/api/migrate/status/{body['migrationId']}").json()

    assert status['migrationId'] == body['migrationId']
    assert status['status'] == 'completed'
    assert status['migratedDocuments'] == 2500
    assert status['totalDocuments'] == 2500
    assert status['progress']['percentage'] == 100
    assert status['progress']['collection'] == 'orders'
    assert len(target_client['shop']['orders'].docs) == 2500


def test_unknown_migration(api):
    assert api.get('/api/migrate/status/missing').status_code == 404
    response = api.post('/api/migrate/stop/missing')
    assert response.status_code == 404
    assert response.json() == {'success': False, 'message': 'Migration not found'}


def test_stop_requested_before_copy_starts(api, runner, gate, source_client, target_client):
    source_client.seed('shop', 'orders', 50)
    gate.clear()

    migration_id = api.post('/api/migrate/start', json=migration_body()).json()['migrationId']
    response = api.post(f'/api/migrate/stop/{migration_id}')
    gate.set()
    runner.wait(migration_id, timeout=10)

    assert response.json() == {'success': True, 'message': 'Migration stop requested'}
    status = api.get(f'/api/migrate/status/{migration_id}').json()
    assert status['status'] == 'stopped'
    assert status['migratedDocuments'] == 0
    assert target_client.touched == set()


def test_connection_failure_marks_migration_failed(api, runner, target_client):
    target_client.ping_error = 'connection refused'

    migration_id = api.post('/api/migrate/start', json=migration_body()).json()['migrationId']
    runner.wait(migration_id, timeout=10)

    status = api.get(f'/api/migrate/status/{migration_id}').json()
    assert status['status'] == 'failed'
    assert 'connection refused' in status['errors'][0]
    assert status['endTime'] is not None


def test_list_migrations(api, store):
    store.save(MigrationRecord(migration_id='abc', stats=MigrationStats(migration_id='abc')))

    migrations = api.get('/api/migrate').json()['migrations']

    assert [m['migrationId'] for m in migrations] == ['abc']
    assert migrations[0]['progress']['percentage'] == 0


def test_invalid_options_rejected(api):
    response = api.post('/api/migrate/start', json=migration_body(batchSize=0))

    assert response.status_code == 400
    assert response.json()['errors']


def test_missing_source_rejected(api):
    response = api.post('/api/migrate/start', json={'target': {'uri': TARGET_URI}})

    assert response.status_code == 400


def test_config_round_trip(api):
    assert api.get('/api/config').status_code == 404

    body = migration_body(dropTarget=True)
    assert api.post('/api/config', json=body).json() == {'success': True, 'message': 'Configuration saved'}

    saved = api.get('/api/config').json()
    assert saved['source']['uri'] == SOURCE_URI
    assert saved['options']['dropTarget'] is True
    assert saved['options']['batchSize'] == 1000


def test_analyze(api, source_client):
    source_client.seed('shop', 'orders', 3)

    response = api.post('/api/analyze', json={'source': {'uri': SOURCE_URI}})

    assert response.status_code == 200
    [shop] = response.json()['databases']
    assert shop['name'] == 'shop'
    assert shop['totalDocuments'] == 3
    assert shop['collections'][0]['indexes'][0]['name'] == '_id_'


def test_analyze_failure(api, source_client):
    source_client.ping_error = 'no servers available'

    response = api.post('/api/analyze', json={'source': {'uri': SOURCE_URI}})

    assert response.status_code == 500
    body = response.json()
    assert body['success'] is False
    assert body['message'] == 'Error analyzing database'
    assert 'no servers available' in body['error']


def test_connection_test(api, source_client):
    assert api.post('/api/connection/test', json={'uri': SOURCE_URI}).json()['success'] is True

    source_client.ping_error = 'timed out'
    response = api.post('/api/connection/test', json={'uri': SOURCE_URI}).json()
    assert response['success'] is False
    assert 'timed out' in response['message']


def test_unknown_route(api):
    response = api.get('/api/nope')

    assert response.status_code == 404
    assert response.json() == {'error': {'message': 'Not Found - /api/nope', 'status': 404}}


def test_store_delete(store):
    store.save(MigrationRecord(migration_id='abc', stats=MigrationStats()))

    assert store.delete('abc') is True
    assert store.delete('abc') is False
    assert store.list() == []


def test_finished_migrations_release_their_futures(api, runner, source_client):
    source_client.seed('shop', 'orders', 5)

    migration_ids = [api.post('/api/migrate/start', json=migration_body()).json()['migrationId']
                     for _ in range(3)]
    for migration_id in migration_ids:
        runner.wait(migration_id, timeout=10)

    assert runner._futures == {}
