import pytest

from mongomigrate.base import ConnectionConfig
from tests.fakes import ClientRegistry, FakeMongoClient

SOURCE_URI = 'mongodb://source:27017'
TARGET_URI = 'mongodb://target:27017'


@pytest.fixture
def source_client():
    return FakeMongoClient(SOURCE_URI)


@pytest.fixture
def target_client():
    return FakeMongoClient(TARGET_URI)


@pytest.fixture
def registry(source_client, target_client):
    return ClientRegistry(source=source_client, target=target_client)


@pytest.fixture
def source_config():
    return ConnectionConfig(uri=SOURCE_URI)


@pytest.fixture
def target_config():
    return ConnectionConfig(uri=TARGET_URI)
