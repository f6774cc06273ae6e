"""
Catalog Manager - In-memory catalog over a durable backend.

The manager owns the list the UI shows. It:
- Loads durable entries (authoritative) and overlays custom entries that
  only exist in the session snapshot, healing them back to durable storage
- Applies entries onto the active configuration
- Saves the current configuration as new or re-saved custom entries
- Deletes custom entries

Preset immutability is checked HERE, in memory, on every path. The
backends check it too, but a degraded fallback must never be the only
guard.
"""

import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional

from .errors import EntryNotFoundError, PersistenceUnavailableError, PresetImmutableError
from .models import ApplyResult, CatalogEntry, PersistenceNotice, layer_key
from .presets import is_builtin_id
from .state import ActiveConfiguration
from .storage import CatalogBackend, InMemoryCatalogStorage
from .writer import WriteQueue

logger = logging.getLogger(__name__)


DEGRADED_MESSAGE = "Changes may not be saved across sessions"


class CatalogManager:
    """
    Catalog of built-in presets and user-created entries.
    """

    def __init__(
        self,
        backend: CatalogBackend,
        state: ActiveConfiguration,
        writer: WriteQueue,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize catalog manager.

        Args:
            backend: Durable catalog backend
            state: Active configuration that entries are applied to
            writer: Queue that runs durability writes
            on_change: Called after the set of custom entries changes
        """
        self._backend = backend
        self._state = state
        self._writer = writer
        self._on_change = on_change
        # entry_id -> CatalogEntry
        self._entries: Dict[str, CatalogEntry] = {}
        self.degraded = False

    @property
    def backend(self) -> CatalogBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def load(self, snapshot_entries: Iterable[CatalogEntry] = ()) -> int:
        """
        Build the in-memory catalog.

        Durable entries are loaded first and win every id collision.
        Custom entries found only in the snapshot are added and scheduled
        for durable storage. If the durable backend cannot be opened, an
        in-memory catalog seeded with the presets takes its place for the
        rest of the session.

        Returns:
            Number of snapshot-only entries healed into durable storage
        """
        try:
            self._backend.initialize()
            durable = self._backend.get_all()
        except PersistenceUnavailableError as e:
            logger.warning(f"Durable catalog unavailable, using in-memory catalog: {e}")
            fallback = InMemoryCatalogStorage()
            fallback.initialize()
            self._backend = fallback
            self.degraded = True
            self._writer.add_notice(PersistenceNotice(
                entity="catalog",
                operation="initialize",
                message=f"{DEGRADED_MESSAGE} ({e})",
            ))
            durable = fallback.get_all()

        self._entries = {entry.id: entry for entry in durable}

        healed = 0
        for entry in snapshot_entries:
            if entry.is_preset or is_builtin_id(entry.id):
                logger.warning(f"Ignoring snapshot entry '{entry.id}' claiming to be a preset")
                continue
            if entry.id in self._entries:
                if self._entries[entry.id] != entry:
                    logger.info(f"Snapshot copy of '{entry.id}' differs; keeping durable copy")
                continue
            self._entries[entry.id] = entry
            self._schedule_sync(entry.id, "heal")
            healed += 1

        logger.info(
            f"Loaded catalog: {len(durable)} durable entries, "
            f"{healed} healed from snapshot"
        )
        return healed

    # ------------------------------------------------------------------
    # Durability
    # ------------------------------------------------------------------

    def _sync_entry(self, entry_id: str) -> None:
        """Make the backend record for entry_id match the in-memory catalog."""
        entry = self._entries.get(entry_id)
        if entry is not None:
            self._backend.put(entry)
            return
        try:
            self._backend.delete(entry_id)
        except EntryNotFoundError:
            pass

    def _schedule_sync(self, entry_id: str, operation: str) -> None:
        self._writer.submit(
            f"entry:{entry_id}", operation, lambda: self._sync_entry(entry_id)
        )

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _guard_preset(self, entry_id: str, action: str) -> None:
        existing = self._entries.get(entry_id)
        if existing is not None and existing.is_preset:
            raise PresetImmutableError(entry_id, existing.name, action)
        if is_builtin_id(entry_id):
            raise PresetImmutableError(entry_id, action=action)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_entries(self, entry_type: Optional[str] = None) -> List[CatalogEntry]:
        """
        List entries, optionally filtered by type.

        Returns:
            Entries ordered by type, then name (id breaks ties)
        """
        entries = [
            entry for entry in self._entries.values()
            if entry_type is None or entry.type == entry_type
        ]
        entries.sort(key=lambda e: (e.type, e.name, e.id))
        return entries

    def entries_by_type(self) -> Dict[str, List[CatalogEntry]]:
        """Group entries by type for display."""
        groups: Dict[str, List[CatalogEntry]] = OrderedDict()
        for entry in self.list_entries():
            groups.setdefault(entry.type, []).append(entry)
        return groups

    def custom_entries(self) -> List[CatalogEntry]:
        return [entry for entry in self.list_entries() if not entry.is_preset]

    def get_entry(self, entry_id: str) -> CatalogEntry:
        """
        Get an entry by id.

        Raises:
            EntryNotFoundError: If no entry has this id
        """
        entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def apply_entry(
        self,
        entry_id: str,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> ApplyResult:
        """
        Merge an entry's properties into the addressed bag.

        Keys the addressed layer does not recognize are skipped and
        reported; keys the entry does not set keep their current values.

        Raises:
            EntryNotFoundError: If no entry has this id
            UnknownTargetError: If the address is unknown
        """
        entry = self.get_entry(entry_id)
        target_id, layer_id = self._state.resolve(target_id, layer_id)
        applied, skipped, clamped = self._state.merge(entry.properties, target_id, layer_id)
        logger.info(f"Applied '{entry_id}' to {target_id}/{layer_key(layer_id)}")
        return ApplyResult(
            entry_id=entry_id,
            target_id=target_id,
            layer_id=layer_id,
            applied=applied,
            skipped=skipped,
            clamped=clamped,
        )

    def save_current_as(
        self,
        name: str,
        entry_type: str = "custom",
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> str:
        """
        Copy the addressed bag into a custom entry.

        Args:
            name: Display name (not required to be unique)
            entry_type: Category tag
            target_id: Target to copy from (None = selection)
            layer_id: Layer to copy from (None = selected/default layer)
            entry_id: Existing custom entry to re-save; None creates a new one

        Returns:
            The entry id

        Raises:
            PresetImmutableError: If entry_id names a preset
        """
        previous = None
        if entry_id is not None:
            self._guard_preset(entry_id, "overwritten")
            previous = self._entries.get(entry_id)

        bag = self._state.get_bag(target_id, layer_id)
        entry = CatalogEntry.custom(name, entry_type, bag, entry_id=entry_id)
        if previous is not None and previous.created_at is not None:
            entry = entry.model_copy(update={"created_at": previous.created_at})

        self._entries[entry.id] = entry
        self._schedule_sync(entry.id, "save")
        self._changed()
        logger.info(f"Saved '{entry.name}' as '{entry.id}'")
        return entry.id

    def save_entry(self, entry: CatalogEntry) -> str:
        """
        Insert or replace a custom entry as given.

        Raises:
            PresetImmutableError: If the entry is, or would replace, a preset
        """
        if entry.is_preset:
            raise PresetImmutableError(entry.id, entry.name, "overwritten")
        self._guard_preset(entry.id, "overwritten")

        self._entries[entry.id] = entry
        self._schedule_sync(entry.id, "save")
        self._changed()
        return entry.id

    def delete_entry(self, entry_id: str) -> None:
        """
        Delete a custom entry from memory and both backends.

        Raises:
            EntryNotFoundError: If no entry has this id
            PresetImmutableError: If the entry is a preset
        """
        entry = self.get_entry(entry_id)
        if entry.is_preset:
            raise PresetImmutableError(entry_id, entry.name, "deleted")
        self._guard_preset(entry_id, "deleted")

        del self._entries[entry_id]
        self._schedule_sync(entry_id, "delete")
        self._changed()
        logger.info(f"Deleted '{entry_id}'")
