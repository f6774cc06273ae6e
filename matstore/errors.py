"""
Material store error types.

All errors inherit from MaterialStoreError for easy catching.
Errors carry the offending identifiers as attributes so the UI can
tell "this is a built-in material" apart from "this material does not exist".
"""


class MaterialStoreError(Exception):
    """Base exception for all material store failures."""
    pass


# ============================================================================
# PROPERTY VALIDATION
# ============================================================================

class PropertyValidationError(MaterialStoreError):
    """Base exception for rejected property writes."""
    pass


class UnknownPropertyError(PropertyValidationError):
    """Raised when a property key is not recognized for a target/layer."""

    def __init__(self, target_kind: str, layer_id, key: str):
        self.target_kind = target_kind
        self.layer_id = layer_id
        self.key = key
        where = target_kind if layer_id is None else f"{target_kind}.{layer_id}"
        super().__init__(f"Unknown property '{key}' for {where}")


class InvalidPropertyValueError(PropertyValidationError):
    """Raised when a property value has the wrong type or format."""

    def __init__(self, key: str, value, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for '{key}': {value!r} ({reason})")


class UnknownTargetError(MaterialStoreError):
    """Raised when a target id is unbound or a layer is not declared."""

    def __init__(self, target_id: str, layer_id=None):
        self.target_id = target_id
        self.layer_id = layer_id
        if layer_id is None:
            message = f"Unknown target: {target_id}"
        else:
            message = f"Unknown layer '{layer_id}' for target '{target_id}'"
        super().__init__(message)


# ============================================================================
# CATALOG
# ============================================================================

class CatalogError(MaterialStoreError):
    """Base exception for catalog operations."""
    pass


class EntryNotFoundError(CatalogError):
    """Raised when a catalog entry id does not exist."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Material not found: {entry_id}")


class PresetImmutableError(CatalogError):
    """Raised when attempting to delete or overwrite a built-in material."""

    def __init__(self, entry_id: str, name: str = "", action: str = "modified"):
        self.entry_id = entry_id
        self.name = name
        self.action = action
        label = name or entry_id
        super().__init__(
            f"'{label}' is a built-in material and cannot be {action}"
        )


# ============================================================================
# PERSISTENCE
# ============================================================================

class PersistenceUnavailableError(MaterialStoreError):
    """Raised when a persistence backend cannot be reached."""
    pass


class StorageError(PersistenceUnavailableError):
    """Raised when durable catalog storage operations fail."""
    pass


class StorageCorruptionError(StorageError):
    """Raised when durable storage corruption is detected."""
    pass


class SnapshotStoreError(PersistenceUnavailableError):
    """Raised when the snapshot file cannot be written."""
    pass
