import json

import pytest

from mongomigrate import connection
from mongomigrate import main as cli
from mongomigrate.base import MigrationOptions
from mongomigrate.config import CONFIG_KEYS
from tests.conftest import SOURCE_URI, TARGET_URI


@pytest.fixture
def env_file(tmp_path, monkeypatch, registry):
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(connection, 'MongoClient', registry)
    monkeypatch.setattr(cli, 'setup_logging', lambda level: None)
    path = tmp_path / '.env'
    path.write_text(f'SOURCE_MONGODB_URI={SOURCE_URI}\nTARGET_MONGODB_URI={TARGET_URI}\nBATCH_SIZE=100\n')
    return path


def test_split_list():
    assert cli.split_list('a, b,,c') == ['a', 'b', 'c']
    assert cli.split_list('') is None
    assert cli.split_list(None) is None


def test_build_options_overrides_defaults():
    args = cli.create_parser().parse_args([
        'migrate', '-s', 'one,two', '-t', 'merged', '-k', 'logs', '--drop-target', '--concurrency', '2',
    ])

    options = cli.build_options(args, MigrationOptions(batch_size=100, timeout_ms=5000))

    assert options.source_databases == ['one', 'two']
    assert options.target_database == 'merged'
    assert options.skip_collections == ['logs']
    assert options.collections is None
    assert options.drop_target is True
    assert options.batch_size == 100
    assert options.concurrency == 2
    assert options.timeout_ms == 5000


def test_migrate_command(env_file, source_client, target_client, capsys):
    source_client.seed('shop', 'orders', 250)

    cli.main(['--env-file', str(env_file), 'migrate', '--no-progress'])

    out = capsys.readouterr().out
    assert 'Migration completed successfully' in out
    assert '250/250 migrated' in out
    assert len(target_client['shop']['orders'].docs) == 250


def test_migrate_dry_run(env_file, source_client, target_client, capsys):
    source_client.seed('shop', 'orders', 10)

    cli.main(['--env-file', str(env_file), 'migrate', '--dry-run', '--no-progress'])

    assert 'Dry run completed successfully' in capsys.readouterr().out
    assert target_client.touched == set()


def test_migrate_lists_first_errors(env_file, source_client, target_client, capsys):
    source_client.seed('shop', 'orders', 700)
    target_client.seed('shop', 'orders', 700)

    cli.main(['--env-file', str(env_file), 'migrate', '--no-progress', '--concurrency', '1'])

    out = capsys.readouterr().out
    assert 'Migration completed with errors' in out
    assert '...and 2 more errors' in out
    assert '700 documents failed to migrate' in out


def test_migrate_connection_failure_exits(env_file, target_client, capsys):
    target_client.ping_error = 'connection refused'

    with pytest.raises(SystemExit) as info:
        cli.main(['--env-file', str(env_file), 'migrate'])

    assert info.value.code == 1
    assert 'connection refused' in capsys.readouterr().out


def test_migrate_failure_status_exits(env_file, source_client):
    source_client.seed('shop', 'orders', 10)
    source_client.command_error = 'not authorized'

    with pytest.raises(SystemExit) as info:
        cli.main(['--env-file', str(env_file), 'migrate', '--no-progress'])

    assert info.value.code == 1


def test_invalid_batch_size_exits(env_file):
    with pytest.raises(SystemExit) as info:
        cli.main(['--env-file', str(env_file), 'migrate', '-b', '0'])
    assert info.value.code == 1


def test_analyze_writes_output_file(env_file, source_client, tmp_path):
    source_client.seed('shop', 'orders', 3)
    output = tmp_path / 'analysis.json'

    cli.main(['--env-file', str(env_file), 'analyze', '-o', str(output)])

    [shop] = json.loads(output.read_text())
    assert shop['name'] == 'shop'
    assert shop['totalDocuments'] == 3
    assert shop['collections'][0]['count'] == 3


def test_analyze_prints_summary(env_file, source_client, capsys):
    source_client.seed('shop', 'small', 1)
    source_client.seed('shop', 'large', 50)

    cli.main(['--env-file', str(env_file), 'analyze', '-s', 'shop'])

    out = capsys.readouterr().out
    assert 'Documents: 51' in out
    assert out.index('- large') < out.index('- small')


def test_verify_exit_code(env_file, source_client, target_client):
    source_client.seed('shop', 'orders', 5)

    with pytest.raises(SystemExit) as info:
        cli.main(['--env-file', str(env_file), 'verify'])
    assert info.value.code == 1

    target_client.seed('shop', 'orders', 5)
    cli.main(['--env-file', str(env_file), 'verify'])


def test_setup_writes_env_file(tmp_path, monkeypatch, capsys):
    env_file = tmp_path / '.env'
    answers = iter([
        'mongodb://src', '2', 'rs0',
        'mongodb+srv://dst', '4', 'key', 'proj',
        '', '3', '',
    ])
    monkeypatch.setattr('builtins.input', lambda prompt: next(answers))

    cli.main(['--env-file', str(env_file), 'setup'])

    lines = env_file.read_text().splitlines()
    assert 'SOURCE_DEPLOYMENT_TYPE=replicaSet' in lines
    assert 'SOURCE_REPLICA_SET=rs0' in lines
    assert 'TARGET_DEPLOYMENT_TYPE=atlas' in lines
    assert 'TARGET_PROJECT_ID=proj' in lines
    assert 'BATCH_SIZE=1000' in lines
    assert 'CONCURRENCY=3' in lines
    assert 'TIMEOUT_MS=30000' in lines


def test_setup_keeps_existing_file(tmp_path, monkeypatch):
    env_file = tmp_path / '.env'
    env_file.write_text('SOURCE_MONGODB_URI=mongodb://keep\n')
    monkeypatch.setattr('builtins.input', lambda prompt: 'n')

    cli.main(['--env-file', str(env_file), 'setup'])

    assert env_file.read_text() == 'SOURCE_MONGODB_URI=mongodb://keep\n'


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit):
        cli.main([])
    assert 'usage' in capsys.readouterr().out
