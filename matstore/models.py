"""
Core data models for the material store.

Catalog entries and snapshots cross the persistence boundary, so they use
Pydantic for strict validation (unknown fields are rejected) and serialize
with the camelCase wire names of the persisted record shape:

    {id, name, type, properties, isPreset, createdAt?}

In-memory bookkeeping records (clamp warnings, persistence notices, apply
results) are plain dataclasses.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Snapshot format version - increment on breaking changes
SNAPSHOT_VERSION = 1

# Key used for the unnamed layer of single-layer targets in snapshots
DEFAULT_LAYER_KEY = "default"

CUSTOM_ID_PREFIX = "custom-"


def new_entry_id() -> str:
    """Generate a fresh id for a user-created entry."""
    return f"{CUSTOM_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def layer_key(layer_id: Optional[str]) -> str:
    return DEFAULT_LAYER_KEY if layer_id is None else layer_id


def layer_from_key(key: str) -> Optional[str]:
    return None if key == DEFAULT_LAYER_KEY else key


# ============================================================================
# CATALOG ENTRY
# ============================================================================

class CatalogEntry(BaseModel):
    """
    A named, reusable property bundle.

    Properties are a PARTIAL bag: only the keys the author set.
    Built-in entries (is_preset=True) are immutable and undeletable.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )

    id: str
    name: str
    type: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    is_preset: bool = Field(default=False, alias="isPreset")
    created_at: Optional[float] = Field(default=None, alias="createdAt")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """ID must be non-empty."""
        if not v or not v.strip():
            raise ValueError("ID cannot be empty")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Name must be non-empty."""
        if not v or not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("properties")
    @classmethod
    def validate_properties(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Property values must be JSON scalars."""
        for key, value in v.items():
            if not isinstance(value, (bool, int, float, str)):
                raise ValueError(
                    f"Property '{key}' must be a number, string or boolean"
                )
        return v

    @classmethod
    def custom(
        cls,
        name: str,
        type: str,
        properties: Dict[str, Any],
        entry_id: Optional[str] = None,
    ) -> "CatalogEntry":
        """Create a user-owned entry from a copy of a property bag."""
        return cls(
            id=entry_id or new_entry_id(),
            name=name,
            type=type,
            properties=dict(properties),
            is_preset=False,
            created_at=time.time(),
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted record shape."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "CatalogEntry":
        """Deserialize from the persisted record shape."""
        return cls.model_validate(data)


# ============================================================================
# SNAPSHOT
# ============================================================================

class Snapshot(BaseModel):
    """
    Session-resume snapshot.

    Holds the whole active configuration tree and the non-preset part of
    the catalog. Not queryable: read once at startup, written after
    every mutation.
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
    )

    version: int = SNAPSHOT_VERSION
    # target_id -> layer key -> property bag
    active_configuration: Dict[str, Dict[str, Dict[str, Any]]] = Field(
        default_factory=dict, alias="activeConfiguration"
    )
    custom_entries: List[CatalogEntry] = Field(
        default_factory=list, alias="customEntries"
    )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# BOOKKEEPING RECORDS
# ============================================================================

@dataclass(frozen=True)
class ClampWarning:
    """An out-of-range scalar that was clamped instead of rejected."""

    target_id: str
    layer_id: Optional[str]
    key: str
    requested: Any
    applied: Any


@dataclass
class PersistenceNotice:
    """
    A deferred, retryable report of a failed durability write.

    The in-memory effect of the mutation that scheduled the write has
    already been applied; the notice only says it may not survive
    the session.
    """

    entity: str
    operation: str
    message: str
    created_at: float = field(default_factory=time.time)
    retry: Optional[Callable[[], None]] = field(default=None, repr=False, compare=False)
    # Retry replaces a still-pending write for the same entity
    coalesce: bool = False

    @property
    def retryable(self) -> bool:
        return self.retry is not None


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying a catalog entry to a property bag."""

    entry_id: str
    target_id: str
    layer_id: Optional[str]
    applied: Dict[str, Any]
    skipped: List[str] = field(default_factory=list)
    clamped: List[str] = field(default_factory=list)
