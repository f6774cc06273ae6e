"""
Tests for durable catalog storage.

Validates:
- Schema creation and version marker
- Presets seeded exactly once
- Corruption and version mismatch detection
- Preset immutability at the storage level
- In-memory fallback parity
"""

import sqlite3

import pytest

from matstore.errors import (
    EntryNotFoundError,
    PresetImmutableError,
    StorageCorruptionError,
    StorageError,
)
from matstore.models import CatalogEntry
from matstore.presets import PRESET_DEFINITIONS
from matstore.storage import STORAGE_SCHEMA_VERSION, CatalogStorage, InMemoryCatalogStorage


def _custom(entry_id="custom-123", name="My Glass", **properties):
    return CatalogEntry.custom(name, "glass", properties or {"roughness": 0.3}, entry_id=entry_id)


# ===== Initialization =====

def test_initialization_creates_schema(storage):
    """Test initialize() creates the table and sets the version marker."""
    assert storage.get_schema_version() == STORAGE_SCHEMA_VERSION

    tables = {
        row[0] for row in storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
    }
    assert "materials" in tables


def test_presets_seeded(storage):
    """Test every built-in preset is present and flagged."""
    entries = storage.get_all()
    assert {e.id for e in entries} == set(PRESET_DEFINITIONS)
    assert all(e.is_preset for e in entries)


def test_initialize_twice_never_duplicates(db_path):
    """Test initialization is idempotent across processes."""
    first = CatalogStorage(db_path)
    first.initialize()
    ids_before = sorted(e.id for e in first.get_all())
    first.close()

    second = CatalogStorage(db_path)
    second.initialize()
    second.initialize()
    ids_after = sorted(e.id for e in second.get_all())
    second.close()

    assert ids_after == ids_before
    assert len(ids_after) == len(PRESET_DEFINITIONS)


def test_seeding_keyed_on_version_marker(db_path):
    """Test a deleted preset row is not re-seeded once the marker is set."""
    storage = CatalogStorage(db_path)
    storage.initialize()
    storage.close()

    conn = sqlite3.connect(db_path)
    conn.execute("DELETE FROM materials WHERE id = 'clear-glass'")
    conn.commit()
    conn.close()

    storage = CatalogStorage(db_path)
    storage.initialize()
    assert storage.get("clear-glass") is None
    storage.close()


def test_integrity_check(db_path):
    """Test storage detects corruption."""
    with open(db_path, "wb") as f:
        f.write(b"corrupted")

    storage = CatalogStorage(db_path)
    with pytest.raises(StorageCorruptionError):
        storage.initialize()


def test_schema_version_mismatch(db_path):
    """Test storage rejects a newer schema version."""
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE materials (id TEXT PRIMARY KEY)")
    conn.execute("PRAGMA user_version = 999")
    conn.commit()
    conn.close()

    storage = CatalogStorage(db_path)
    with pytest.raises(StorageError, match="Schema version mismatch"):
        storage.initialize()


def test_unopened_storage_raises(db_path):
    storage = CatalogStorage(db_path)
    with pytest.raises(StorageError, match="not opened"):
        storage.get_all()


def test_unreachable_path_raises_storage_error(tmp_path):
    """Test a path under a regular file cannot be opened."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    storage = CatalogStorage(blocker / "materials.db")
    with pytest.raises(StorageError):
        storage.initialize()


# ===== Reads and writes =====

def test_put_and_get(storage):
    entry = _custom()
    storage.put(entry)

    loaded = storage.get("custom-123")
    assert loaded == entry
    assert loaded.is_preset is False


def test_put_replaces_by_id(storage):
    storage.put(_custom(roughness=0.3))
    storage.put(_custom(name="Renamed", roughness=0.9))

    matches = [e for e in storage.get_all() if e.id == "custom-123"]
    assert len(matches) == 1
    assert matches[0].name == "Renamed"
    assert matches[0].properties == {"roughness": 0.9}


def test_persists_across_reopen(db_path):
    storage = CatalogStorage(db_path)
    storage.initialize()
    storage.put(_custom())
    storage.close()

    with CatalogStorage(db_path) as reopened:
        assert reopened.get("custom-123") is not None


def test_find_by_type_and_name(storage):
    storage.put(_custom())
    metals = storage.find_by_type("metal")
    assert {e.id for e in metals} == {"silver-metal", "gold-metal", "brushed-aluminum"}
    assert [e.id for e in storage.find_by_name("My Glass")] == ["custom-123"]


def test_delete_custom(storage):
    storage.put(_custom())
    storage.delete("custom-123")
    assert storage.get("custom-123") is None


def test_delete_missing(storage):
    with pytest.raises(EntryNotFoundError):
        storage.delete("custom-nope")


# ===== Preset immutability =====

def test_delete_preset_rejected(storage):
    with pytest.raises(PresetImmutableError, match="built-in material"):
        storage.delete("frosted-blue-glass")
    assert storage.get("frosted-blue-glass") is not None


def test_overwrite_preset_id_rejected(storage):
    impostor = _custom(entry_id="frosted-blue-glass", name="Impostor")
    with pytest.raises(PresetImmutableError):
        storage.put(impostor)
    assert storage.get("frosted-blue-glass").name == "Frosted Blue Glass"


def test_put_preset_flag_rejected(storage):
    entry = CatalogEntry(id="custom-x", name="X", type="glass", is_preset=True)
    with pytest.raises(PresetImmutableError):
        storage.put(entry)


# ===== In-memory fallback =====

def test_in_memory_fallback_rules():
    """Test the fallback enforces the same rules as durable storage."""
    backend = InMemoryCatalogStorage()
    backend.initialize()
    backend.initialize()

    assert backend.persistent is False
    assert len(backend.get_all()) == len(PRESET_DEFINITIONS)

    backend.put(_custom())
    assert [e.id for e in backend.find_by_type("glass") if not e.is_preset] == ["custom-123"]

    with pytest.raises(PresetImmutableError):
        backend.delete("gold-metal")
    with pytest.raises(PresetImmutableError):
        backend.put(_custom(entry_id="gold-metal"))
    with pytest.raises(EntryNotFoundError):
        backend.delete("custom-nope")

    backend.delete("custom-123")
    assert backend.get("custom-123") is None
