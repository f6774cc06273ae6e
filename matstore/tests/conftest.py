"""
Pytest configuration for matstore tests.
"""

from pathlib import Path

import pytest

from matstore.config import StoreConfig
from matstore.schema import build_default_schema
from matstore.snapshot import SnapshotStore
from matstore.state import ActiveConfiguration
from matstore.storage import CatalogStorage
from matstore.store import MaterialStore
from matstore.writer import WriteQueue


@pytest.fixture
def schema():
    return build_default_schema()


@pytest.fixture
def state(schema):
    return ActiveConfiguration(schema)


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "materials.db"


@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    return tmp_path / "snapshot.json"


@pytest.fixture
def storage(db_path):
    """Initialized durable storage, closed after the test."""
    backend = CatalogStorage(db_path)
    backend.initialize()
    yield backend
    backend.close()


@pytest.fixture
def snapshots(snapshot_path):
    return SnapshotStore(snapshot_path)


@pytest.fixture
def sync_writer():
    writer = WriteQueue(synchronous=True)
    yield writer
    writer.close()


@pytest.fixture
def config(tmp_path) -> StoreConfig:
    """Config with inline writes so persistence is visible immediately."""
    return StoreConfig.for_directory(tmp_path, background_writes=False)


@pytest.fixture
def store(config):
    """Opened store, closed after the test."""
    material_store = MaterialStore(config).open()
    yield material_store
    material_store.close()
