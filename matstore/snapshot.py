"""
Snapshot Store - JSON file persistence for fast session resume.

Holds the active configuration tree and the custom (non-preset) catalog
entries:

    {
        "version": 1,
        "activeConfiguration": {target_id: {layer_key: property_bag}},
        "customEntries": [CatalogEntry record, ...]
    }

Rules:
- Read once at startup, written after every mutation
- Writes are atomic (temp file + replace)
- Missing, unreadable or unknown-version files load as None:
  the caller falls back to defaults, no migration is guessed at
- A rejected file is never overwritten: it is moved aside
  (snapshot.v2.json, snapshot.invalid.json, ...) before the next write.
  If it cannot be moved, writes fail until clear() is called.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .errors import SnapshotStoreError
from .models import SNAPSHOT_VERSION, Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    JSON file-based storage for session snapshots.

    Not queryable. Not thread-safe on its own: all writes go through
    the store's single write queue.
    """

    def __init__(self, snapshot_path: Path):
        """
        Initialize snapshot store.

        Args:
            snapshot_path: Path to the JSON snapshot file
        """
        self.snapshot_path = Path(snapshot_path)
        # Where the last rejected file was moved to
        self.set_aside_path: Optional[Path] = None
        self._blocked = False

    def load(self) -> Optional[Snapshot]:
        """
        Load the snapshot.

        Returns:
            The snapshot, or None if there is no usable snapshot
        """
        if not self.snapshot_path.exists():
            return None

        try:
            with open(self.snapshot_path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.snapshot_path}: {e}")
            self._set_aside("invalid")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed snapshot {self.snapshot_path}")
            self._set_aside("invalid")
            return None

        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            logger.warning(
                f"Ignoring snapshot {self.snapshot_path} with unsupported "
                f"version {version!r} (expected {SNAPSHOT_VERSION})"
            )
            self._set_aside(
                f"v{version}" if isinstance(version, int) and not isinstance(version, bool) else "invalid"
            )
            return None

        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid snapshot {self.snapshot_path}: {e}")
            self._set_aside("invalid")
            return None

    def _set_aside(self, label: str) -> None:
        """Move a rejected snapshot out of the way, keeping its content."""
        path = self.snapshot_path
        target = path.with_name(f"{path.stem}.{label}{path.suffix}")
        counter = 1
        while target.exists():
            target = path.with_name(f"{path.stem}.{label}.{counter}{path.suffix}")
            counter += 1

        try:
            path.replace(target)
        except OSError as e:
            logger.warning(f"Could not move rejected snapshot {path} aside: {e}")
            self._blocked = True
            return

        self.set_aside_path = target
        logger.warning(f"Moved rejected snapshot to {target}")

    def save(self, snapshot: Snapshot) -> None:
        """
        Persist a snapshot atomically.

        Raises:
            SnapshotStoreError: If the file cannot be written, or a rejected
                snapshot still occupies the path
        """
        if self._blocked:
            raise SnapshotStoreError(
                f"Refusing to overwrite rejected snapshot {self.snapshot_path}"
            )

        temp_path = self.snapshot_path.with_suffix(".tmp")
        try:
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            temp_path.replace(self.snapshot_path)
        except OSError as e:
            raise SnapshotStoreError(
                f"Failed to write snapshot {self.snapshot_path}: {e}"
            ) from e

        logger.debug(f"Wrote snapshot to {self.snapshot_path}")

    def clear(self) -> None:
        """Remove the snapshot file if present."""
        try:
            self.snapshot_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise SnapshotStoreError(
                f"Failed to remove snapshot {self.snapshot_path}: {e}"
            ) from e
        self._blocked = False
