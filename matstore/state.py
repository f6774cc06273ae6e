"""
Active Configuration State - The in-memory, addressable property tree.

    target_id -> layer_id -> property bag

Renderers read it every frame; only editor/apply/save/delete flows
write it. All writes are validated through the PropertySchema:

- Unrecognized keys fail with UnknownPropertyError (never swallowed)
- Out-of-range scalars are clamped and recorded as ClampWarning
- set_many() is first-failure-atomic: one bad key, nothing applied

Bags are created lazily with schema defaults and are always fully
populated. One (target_id, layer_id) address is selected at any time;
reads and writes without an explicit target use the selection.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .errors import PropertyValidationError, UnknownTargetError
from .models import ClampWarning, layer_from_key, layer_key
from .schema import PropertySchema

logger = logging.getLogger(__name__)


Address = Tuple[str, Optional[str]]

# Oldest clamp warnings are dropped beyond this many
MAX_CLAMP_WARNINGS = 1000


class ActiveConfiguration:
    """
    Addressable working values for every target/layer touched this session.
    """

    def __init__(
        self,
        schema: PropertySchema,
        initial_target: str = "glassChip",
        initial_layer: Optional[str] = None,
        on_change: Optional[Callable[[str, Optional[str]], None]] = None,
    ):
        """
        Initialize state and select the initial address.

        Args:
            schema: Property schema used for defaults and validation
            initial_target: Target selected at startup
            initial_layer: Layer selected at startup (None = default layer)
            on_change: Called with (target_id, layer_id) after every write
        """
        self.schema = schema
        # target_id -> layer_id -> bag
        self._bags: Dict[str, Dict[Optional[str], Dict[str, Any]]] = {}
        self._selection: Address = (initial_target, initial_layer)
        self._on_change = on_change
        self.clamp_warnings: Deque[ClampWarning] = deque(maxlen=MAX_CLAMP_WARNINGS)
        # Incremented by every write; dirty until a snapshot of it is saved
        self.generation = 0
        self._clean_generation = 0
        self.select(initial_target, initial_layer)

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    @property
    def selection(self) -> Address:
        return self._selection

    def _address(
        self, target_id: Optional[str], layer_id: Optional[str]
    ) -> Tuple[str, str, Optional[str]]:
        """Resolve an optional explicit address to (target_id, kind, layer_id)."""
        if target_id is None:
            target_id, selected_layer = self._selection
            if layer_id is None:
                layer_id = selected_layer
        kind, layer_id = self.schema.resolve(target_id, layer_id)
        return target_id, kind, layer_id

    def resolve(self, target_id: Optional[str] = None, layer_id: Optional[str] = None) -> Address:
        """Resolve an optional explicit address to a concrete (target_id, layer_id)."""
        target_id, _, layer_id = self._address(target_id, layer_id)
        return target_id, layer_id

    def _bag(self, target_id: str, kind: str, layer_id: Optional[str]) -> Dict[str, Any]:
        layers = self._bags.setdefault(target_id, {})
        if layer_id not in layers:
            layers[layer_id] = self.schema.get_defaults(kind, layer_id)
        return layers[layer_id]

    def select(self, target_id: str, layer_id: Optional[str] = None) -> Address:
        """
        Switch the selected address, creating its bag from defaults if needed.

        A layered target selected without a layer gets its default layer.

        Raises:
            UnknownTargetError: If the target or layer is unknown
        """
        target_id, kind, layer_id = self._address(target_id, layer_id)
        self._bag(target_id, kind, layer_id)
        self._selection = (target_id, layer_id)
        logger.debug(f"Selected {target_id}/{layer_key(layer_id)}")
        return self._selection

    def addresses(self) -> List[Address]:
        """List every address that has a bag."""
        return [
            (target_id, layer_id)
            for target_id, layers in self._bags.items()
            for layer_id in layers
        ]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self,
        key: Optional[str] = None,
        *,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Any:
        """
        Read one property, or a copy of the whole bag when key is None.

        Raises:
            UnknownPropertyError: If key is not recognized for the address
        """
        target_id, kind, layer_id = self._address(target_id, layer_id)
        bag = self._bag(target_id, kind, layer_id)
        if key is None:
            return dict(bag)
        self.schema.spec_for(kind, layer_id, key)
        return bag[key]

    def get_bag(self, target_id: Optional[str] = None, layer_id: Optional[str] = None) -> Dict[str, Any]:
        return self.get(None, target_id=target_id, layer_id=layer_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _changed(self, target_id: str, layer_id: Optional[str]) -> None:
        self.generation += 1
        if self._on_change is not None:
            self._on_change(target_id, layer_id)

    def _record_clamp(self, target_id, layer_id, key, requested, applied) -> None:
        self.clamp_warnings.append(ClampWarning(target_id, layer_id, key, requested, applied))
        logger.info(
            f"Clamped {target_id}/{layer_key(layer_id)}.{key}: {requested!r} -> {applied!r}"
        )

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
            The value actually stored (clamped for out-of-range scalars)

        Raises:
            UnknownPropertyError: If key is not recognized
            InvalidPropertyValueError: If value has the wrong type
        """
        return self.set_many({key: value}, target_id=target_id, layer_id=layer_id)[key]

    def set_many(
        self,
        partial: Dict[str, Any],
        *,
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Write several properties atomically.

        Every key is validated before anything is written; the first
        invalid key fails the whole batch. Clamping does not fail a batch.

        Returns:
            Mapping of key -> stored value
        """
        target_id, kind, layer_id = self._address(target_id, layer_id)

        validated: Dict[str, Tuple[Any, bool]] = {}
        for key, value in partial.items():
            validated[key] = self.schema.validate(kind, layer_id, key, value)

        bag = self._bag(target_id, kind, layer_id)
        applied: Dict[str, Any] = {}
        for key, (stored, clamped) in validated.items():
            if clamped:
                self._record_clamp(target_id, layer_id, key, partial[key], stored)
            bag[key] = stored
            applied[key] = stored

        if applied:
            logger.debug(f"Set {sorted(applied)} on {target_id}/{layer_key(layer_id)}")
            self._changed(target_id, layer_id)
        return applied

    def merge(
        self,
        partial: Dict[str, Any],
        target_id: Optional[str] = None,
        layer_id: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], List[str], List[str]]:
        """
        Merge a partial bag, skipping keys the address cannot hold.

        Used when applying catalog entries, whose properties are authored
        per material type rather than per target.

        Returns:
            (applied, skipped_keys, clamped_keys)
        """
        target_id, kind, layer_id = self._address(target_id, layer_id)
        bag = self._bag(target_id, kind, layer_id)

        applied: Dict[str, Any] = {}
        skipped: List[str] = []
        clamped_keys: List[str] = []
        for key, value in partial.items():
            try:
                stored, clamped = self.schema.validate(kind, layer_id, key, value)
            except PropertyValidationError:
                skipped.append(key)
                continue
            if clamped:
                self._record_clamp(target_id, layer_id, key, value, stored)
                clamped_keys.append(key)
            bag[key] = stored
            applied[key] = stored

        if skipped:
            logger.debug(f"Skipped {skipped} not held by {target_id}/{layer_key(layer_id)}")
        self._changed(target_id, layer_id)
        return applied, skipped, clamped_keys

    def reset(self, target_id: Optional[str] = None, layer_id: Optional[str] = None) -> Dict[str, Any]:
        """Restore the addressed bag to schema defaults."""
        target_id, kind, layer_id = self._address(target_id, layer_id)
        self._bags.setdefault(target_id, {})[layer_id] = self.schema.get_defaults(kind, layer_id)
        logger.info(f"Reset {target_id}/{layer_key(layer_id)} to defaults")
        self._changed(target_id, layer_id)
        return dict(self._bags[target_id][layer_id])

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def to_snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Copy the tree into the snapshot shape (layer None -> "default")."""
        return {
            target_id: {layer_key(layer_id): dict(bag) for layer_id, bag in layers.items()}
            for target_id, layers in self._bags.items()
        }

    def restore(self, tree: Dict[str, Dict[str, Dict[str, Any]]]) -> int:
        """
        Load working values from a snapshot tree.

        Unknown targets, layers and keys are dropped; invalid values fall
        back to defaults; scalars are clamped. Does not mark the state dirty.

        Returns:
            Number of bags restored
        """
        restored = 0
        for target_id, layers in tree.items():
            for key, values in layers.items():
                layer_id = layer_from_key(key)
                try:
                    kind, layer_id = self.schema.resolve(target_id, layer_id)
                except UnknownTargetError:
                    logger.warning(f"Dropping snapshot bag for unknown {target_id}/{key}")
                    continue

                bag = self.schema.get_defaults(kind, layer_id)
                for prop, value in values.items():
                    try:
                        bag[prop] = self.schema.clamp(kind, layer_id, prop, value)
                    except PropertyValidationError:
                        logger.debug(f"Dropping snapshot value {target_id}/{key}.{prop}")
                self._bags.setdefault(target_id, {})[layer_id] = bag
                restored += 1

        # Keep the current selection valid
        self.select(*self._selection)
        return restored

    @property
    def dirty(self) -> bool:
        """True while some write is newer than the last saved snapshot."""
        return self.generation > self._clean_generation

    def mark_clean(self, generation: Optional[int] = None) -> None:
        """
        Record that a snapshot taken at `generation` has been saved.

        Writes made after that snapshot keep the state dirty.
        """
        if generation is None:
            generation = self.generation
        if generation > self._clean_generation:
            self._clean_generation = generation

    def drain_clamp_warnings(self) -> List[ClampWarning]:
        """Return and forget the recorded clamp warnings."""
        warnings = list(self.clamp_warnings)
        self.clamp_warnings.clear()
        return warnings
