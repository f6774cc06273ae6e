"""
Material Store - The single facade collaborators talk to.

Wires together:
- PropertySchema         (what can be set, defaults, ranges)
- ActiveConfiguration    (working values per target/layer)
- CatalogManager         (presets + custom entries)
- CatalogStorage         (durable, authoritative for catalog identity)
- SnapshotStore          (fast session resume)
- WriteQueue             (all persistence writes, FIFO)

Every mutation applies in memory first and returns; persistence follows
on the write queue. A failed write never unwinds the mutation, it is
recorded as a retryable notice instead.

Usage:
    with MaterialStore(StoreConfig.from_env()) as store:
        store.apply_entry("frosted-blue-glass", "glassChip")
        store.set("roughness", 0.3)
        entry_id = store.save_current_as("My Glass", "glass")
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .catalog import CatalogManager
from .config import StoreConfig
from .models import ApplyResult, CatalogEntry, ClampWarning, PersistenceNotice, Snapshot
from .schema import PropertySchema, build_default_schema
from .snapshot import SnapshotStore
from .state import Address, ActiveConfiguration
from .storage import CatalogBackend, CatalogStorage
from .writer import WriteQueue

logger = logging.getLogger(__name__)


SNAPSHOT_ENTITY = "snapshot"


class MaterialStore:
    """
    Material configuration store.

    Must be opened (open() or a with-block) before use.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        schema: Optional[PropertySchema] = None,
        backend: Optional[CatalogBackend] = None,
        snapshots: Optional[SnapshotStore] = None,
    ):
        """
        Initialize the store without touching disk.

        Args:
            config: Paths and options (default: StoreConfig())
            schema: Property schema (default: built-in glassChip/glowingButton)
            backend: Durable catalog backend (default: CatalogStorage at config.db_path)
            snapshots: Snapshot store (default: SnapshotStore at config.snapshot_path)
        """
        self.config = config or StoreConfig()
        self.schema = schema or build_default_schema()
        self._snapshots = snapshots or SnapshotStore(self.config.snapshot_path)
        self._writer = WriteQueue(synchronous=not self.config.background_writes)
        self._state = ActiveConfiguration(
            self.schema,
            initial_target=self.config.initial_target,
            initial_layer=self.config.initial_layer,
            on_change=self._on_state_change,
        )
        self._catalog = CatalogManager(
            backend or CatalogStorage(self.config.db_path),
            self._state,
            self._writer,
            on_change=self._on_catalog_change,
        )
        # (state generation, snapshot) most recently built
        self._latest_snapshot: Optional[Tuple[int, Snapshot]] = None
        self._opened = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> "MaterialStore":
        """
        Load the snapshot and the durable catalog.

        Working values come from the snapshot; the catalog is the durable
        catalog overlaid with snapshot-only custom entries. Never fails on
        persistence problems: a missing or stale snapshot means defaults,
        an unavailable database means degraded mode.
        """
        if self._opened:
            return self
        if self._closed:
            raise RuntimeError("Store has been closed")

        snapshot = self._snapshots.load()
        if snapshot is not None:
            restored = self._state.restore(snapshot.active_configuration)
            logger.info(f"Restored {restored} property bags from snapshot")
            healed = self._catalog.load(snapshot.custom_entries)
        else:
            healed = self._catalog.load()

        self._opened = True
        if snapshot is None or healed:
            self._schedule_snapshot()
        else:
            self._latest_snapshot = (self._state.generation, self._build_snapshot())

        logger.info(
            f"Material store open: {len(self._catalog)} entries"
            + (" (degraded)" if self.degraded else "")
        )
        return self

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain pending writes and release the durable backend."""
        if self._closed:
            return
        self._closed = True
        self._writer.close(timeout)
        self._catalog.backend.close()
        self._opened = False
        logger.info("Material store closed")

    def __enter__(self) -> "MaterialStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _require_open(self) -> None:
        if not self._opened:
            raise RuntimeError("Material store is not open")

    # ------------------------------------------------------------------
    # Snapshot scheduling
    # ------------------------------------------------------------------

    def _build_snapshot(self) -> Snapshot:
        return Snapshot(
            active_configuration=self._state.to_snapshot(),
            custom_entries=self._catalog.custom_entries(),
        )

    def _save_latest_snapshot(self) -> None:
        latest = self._latest_snapshot
        if latest is None:
            return
        generation, snapshot = latest
        self._snapshots.save(snapshot)
        self._state.mark_clean(generation)

    def _schedule_snapshot(self) -> None:
        self._latest_snapshot = (self._state.generation, self._build_snapshot())
        self._writer.submit(
            SNAPSHOT_ENTITY, "snapshot", self._save_latest_snapshot, coalesce=True
        )

    def _on_state_change(self, target_id: str, layer_id: Optional[str]) -> None:
        if self._opened:
            self._schedule_snapshot()

    def _on_catalog_change(self) -> None:
        if self._opened:
            self._schedule_snapshot()

    # ------------------------------------------------------------------
    # Active configuration
    # ------------------------------------------------------------------

    @property
    def selection(self) -> Address:
        return self._state.selection

    def select(self, target_id: str, layer_id: Optional[str] = None) -> Address:
        """Select the addressed pair, creating its bag from defaults if needed."""
        return self._state.select(target_id, layer_id)

    def get(
        self,
        key: Optional[str] = None,
        *,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Any:
        """Read one property, or a copy of the whole bag when key is None."""
        return self._state.get(key, target_id=target_id, layer_id=layer_id)

    def get_current_values(
        self, target_id: Optional[str] = None, layer_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return self._state.get_bag(target_id, layer_id)

    def set(
        self,
        key: str,
        value: Any,
        *,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Any:
        """
        Write one property.

        Returns:
            The stored value (clamped for out-of-range scalars)

        Raises:
            UnknownPropertyError: If key is not recognized for the address
            InvalidPropertyValueError: If value has the wrong type
        """
        self._require_open()
        return self._state.set(key, value, target_id=target_id, layer_id=layer_id)

    update_property = set

    def set_many(
        self,
        partial: Dict[str, Any],
        *,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write several properties; one invalid key and nothing is applied."""
        self._require_open()
        return self._state.set_many(partial, target_id=target_id, layer_id=layer_id)

    update_properties = set_many

    def reset(self, target_id: Optional[str] = None, layer_id: Optional[str] = None) -> Dict[str, Any]:
        self._require_open()
        return self._state.reset(target_id, layer_id)

    @property
    def clamp_warnings(self) -> List[ClampWarning]:
        return list(self._state.clamp_warnings)

    def drain_clamp_warnings(self) -> List[ClampWarning]:
        """Return and forget the recorded clamp warnings."""
        return self._state.drain_clamp_warnings()

    @property
    def dirty(self) -> bool:
        """True while working values have changes not yet in the snapshot file."""
        return self._state.dirty

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_entries(self, entry_type: Optional[str] = None) -> List[CatalogEntry]:
        self._require_open()
        return self._catalog.list_entries(entry_type)

    def entries_by_type(self) -> Dict[str, List[CatalogEntry]]:
        self._require_open()
        return self._catalog.entries_by_type()

    def get_entry(self, entry_id: str) -> CatalogEntry:
        self._require_open()
        return self._catalog.get_entry(entry_id)

    def apply_entry(
        self,
        entry_id: str,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> ApplyResult:
        """
        Merge an entry's properties into the addressed bag.

        Raises:
            EntryNotFoundError: If no entry has this id
        """
        self._require_open()
        return self._catalog.apply_entry(entry_id, target_id, layer_id)

    def save_current_as(
        self,
        name: str,
        entry_type: str = "custom",
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> str:
        """
        Save the addressed bag as a custom entry.

        Returns:
            The new (or re-saved) entry id

        Raises:
            PresetImmutableError: If entry_id names a built-in material
        """
        self._require_open()
        return self._catalog.save_current_as(name, entry_type, target_id, layer_id, entry_id)

    def save_entry(self, entry: CatalogEntry) -> str:
        self._require_open()
        return self._catalog.save_entry(entry)

    def delete_entry(self, entry_id: str) -> None:
        """
        Delete a custom entry.

        Raises:
            EntryNotFoundError: If no entry has this id
            PresetImmutableError: If the entry is a built-in material
        """
        self._require_open()
        self._catalog.delete_entry(entry_id)

    # ------------------------------------------------------------------
    # Persistence status
    # ------------------------------------------------------------------

    @property
    def degraded(self) -> bool:
        """True when the durable catalog could not be opened this session."""
        return self._catalog.degraded

    @property
    def notices(self) -> List[PersistenceNotice]:
        return self._writer.notices

    def drain_notices(self) -> List[PersistenceNotice]:
        """Return and forget the recorded notices, retryable ones included."""
        return self._writer.drain_notices()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for pending persistence writes.

        Returns:
            True if every write ran, False on timeout
        """
        return self._writer.flush(timeout)

    def retry_failed(self) -> int:
        """Re-schedule failed writes. Returns how many were re-scheduled."""
        return self._writer.retry_failed()

    def status(self) -> Dict[str, Any]:
        """Summarize persistence health for display."""
        entries = self._catalog.list_entries() if self._opened else []
        set_aside = self._snapshots.set_aside_path
        return {
            "open": self._opened,
            "db_path": str(self.config.db_path),
            "snapshot_path": str(self.config.snapshot_path),
            "snapshot_set_aside": str(set_aside) if set_aside else None,
            "persistent": self._catalog.backend.persistent,
            "degraded": self.degraded,
            "entries": len(entries),
            "presets": sum(1 for e in entries if e.is_preset),
            "custom": sum(1 for e in entries if not e.is_preset),
            "pending_writes": self._writer.pending,
            "notices": [n.message for n in self._writer.notices],
            "selection": list(self._state.selection),
        }
