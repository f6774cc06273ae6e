"""
matstore - Material configuration store.

Visual components do not own their appearance. They read named property
bundles ("materials") from this store and re-render when a bundle changes.

matstore holds the working values per (target, layer).
matstore keeps a catalog of built-in presets and custom entries.
matstore persists durably (SQLite) and for fast resume (JSON snapshot).

Constraints:
- Built-in presets are never deleted or overwritten
- Unknown properties fail loudly
- Out-of-range values are clamped, not rejected
- Persistence failures never block editing
"""

from .catalog import CatalogManager
from .config import StoreConfig
from .errors import (
    CatalogError,
    EntryNotFoundError,
    InvalidPropertyValueError,
    MaterialStoreError,
    PersistenceUnavailableError,
    PresetImmutableError,
    PropertyValidationError,
    SnapshotStoreError,
    StorageCorruptionError,
    StorageError,
    UnknownPropertyError,
    UnknownTargetError,
)
from .models import ApplyResult, CatalogEntry, ClampWarning, PersistenceNotice, Snapshot
from .schema import PropertySchema, build_default_schema
from .state import ActiveConfiguration
from .store import MaterialStore

__version__ = "1.0.0"

__all__ = [
    "ActiveConfiguration",
    "ApplyResult",
    "CatalogEntry",
    "CatalogError",
    "CatalogManager",
    "ClampWarning",
    "EntryNotFoundError",
    "InvalidPropertyValueError",
    "MaterialStore",
    "MaterialStoreError",
    "PersistenceNotice",
    "PersistenceUnavailableError",
    "PresetImmutableError",
    "PropertySchema",
    "PropertyValidationError",
    "Snapshot",
    "SnapshotStoreError",
    "StorageCorruptionError",
    "StorageError",
    "StoreConfig",
    "UnknownPropertyError",
    "UnknownTargetError",
    "build_default_schema",
]
