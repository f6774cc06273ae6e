"""
Property Schema - Declarative description of recognized material properties.

Every visual target belongs to a target kind. A kind declares one or more
layers (a single unnamed layer, or named layers such as outerShell /
innerCore / innermostSpark) and each layer declares the property keys it
recognizes, with a default value, a value kind and, for scalars, a range.

Rules:
------
- The schema is static: built once at process start
- Lookups are pure (no side effects, no I/O)
- Adding a target kind, layer or target binding is a schema-only change
- Unrecognized keys are rejected, out-of-range scalars are clamped

Usage:
======
    schema = build_default_schema()
    kind, layer = schema.resolve("glowingButton", None)   # -> ("glowingButton", "outerShell")
    schema.clamp(kind, layer, "roughness", 1.4)           # -> 1.0
"""

import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import InvalidPropertyValueError, UnknownPropertyError, UnknownTargetError


# =============================================================================
# Property Kinds
# =============================================================================

class PropertyKind(str, Enum):
    """Value kind of a material property."""
    COLOR = "color"        # "#RRGGBB" hex string
    SCALAR = "scalar"      # float within [min, max]
    BOOLEAN = "boolean"    # True / False
    CHOICE = "choice"      # one of a closed set of strings


class MaterialType(str, Enum):
    """Material families understood by the renderers."""
    GLASS = "glass"
    METAL = "metal"
    PLASTIC = "plastic"
    PATTERN = "pattern"
    BASIC = "basic"
    STANDARD = "standard"
    PHYSICAL = "physical"
    NORMAL = "normal"
    MATCAP = "matcap"
    SHADER = "shader"
    GLOW = "glow"
    GRADIENT = "gradient"


_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


# =============================================================================
# Schema Definitions
# =============================================================================

@dataclass(frozen=True)
class PropertySpec:
    """
    Immutable declaration of one recognized property.

    Attributes:
        key: Property key as written in property bags
        kind: Value kind
        default: Value used when the key is unset
        min: Lower bound (scalars only)
        max: Upper bound (scalars only)
        choices: Allowed values (choices only)
    """
    key: str
    kind: PropertyKind
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    choices: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate spec integrity."""
        if not self.key:
            raise ValueError("Property key cannot be empty")
        if self.kind == PropertyKind.SCALAR:
            if self.min is None or self.max is None:
                raise ValueError(f"Scalar property '{self.key}' requires min and max")
            if self.min > self.max:
                raise ValueError(f"Invalid range for '{self.key}': {self.min} > {self.max}")
            if not self.min <= self.default <= self.max:
                raise ValueError(f"Default for '{self.key}' outside [{self.min}, {self.max}]")
        if self.kind == PropertyKind.CHOICE and self.default not in self.choices:
            raise ValueError(f"Default for '{self.key}' is not one of its choices")

    def coerce(self, value: Any) -> Tuple[Any, bool]:
        """
        Validate a value against this spec.

        Returns:
            (value, clamped) where value is the value to store and clamped
            tells whether a scalar was moved into range.

        Raises:
            InvalidPropertyValueError: If the value has the wrong type/format
        """
        if self.kind == PropertyKind.SCALAR:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidPropertyValueError(self.key, value, "expected a number")
            if math.isnan(value):
                raise InvalidPropertyValueError(self.key, value, "NaN is not allowed")
            bounded = min(max(float(value), self.min), self.max)
            return bounded, bounded != value

        if self.kind == PropertyKind.COLOR:
            if not isinstance(value, str) or not _COLOR_PATTERN.match(value):
                raise InvalidPropertyValueError(self.key, value, "expected '#RRGGBB'")
            return value, False

        if self.kind == PropertyKind.BOOLEAN:
            if not isinstance(value, bool):
                raise InvalidPropertyValueError(self.key, value, "expected a boolean")
            return value, False

        if value not in self.choices:
            raise InvalidPropertyValueError(
                self.key, value, f"expected one of {', '.join(self.choices)}"
            )
        return value, False


@dataclass(frozen=True)
class LayerSchema:
    """Properties recognized by one layer of a target kind."""
    properties: Dict[str, PropertySpec] = field(default_factory=dict)

    def defaults(self) -> Dict[str, Any]:
        return {key: spec.default for key, spec in self.properties.items()}


@dataclass(frozen=True)
class TargetSchema:
    """
    A target kind and its layers.

    Single-layer kinds use None as their only layer id.
    For layered kinds the first declared layer is the default layer.
    """
    kind: str
    layers: Dict[Optional[str], LayerSchema]

    def __post_init__(self):
        if not self.kind:
            raise ValueError("Target kind cannot be empty")
        if not self.layers:
            raise ValueError(f"Target kind '{self.kind}' declares no layers")
        if None in self.layers and len(self.layers) > 1:
            raise ValueError(f"Target kind '{self.kind}' mixes named and unnamed layers")

    @property
    def is_layered(self) -> bool:
        return None not in self.layers

    @property
    def default_layer(self) -> Optional[str]:
        return next(iter(self.layers))


# =============================================================================
# Property Schema
# =============================================================================

class PropertySchema:
    """
    Registry of target kinds and target bindings.

    A target id (e.g. "glassChip", "chip-2") is bound to a target kind.
    Every registered kind is bound to a target id of the same name.
    """

    def __init__(
        self,
        targets: Iterable[TargetSchema] = (),
        bindings: Optional[Dict[str, str]] = None,
    ):
        # kind -> TargetSchema
        self._kinds: Dict[str, TargetSchema] = {}
        # target_id -> kind
        self._bindings: Dict[str, str] = {}

        for target in targets:
            self.add_target(target)
        for target_id, kind in (bindings or {}).items():
            self.bind_target(target_id, kind)

    def add_target(self, target: TargetSchema) -> None:
        """
        Register a target kind.

        Raises:
            ValueError: If the kind is already registered
        """
        if target.kind in self._kinds:
            raise ValueError(f"Target kind '{target.kind}' already registered")
        self._kinds[target.kind] = target
        self._bindings.setdefault(target.kind, target.kind)

    def bind_target(self, target_id: str, kind: str) -> None:
        """
        Bind a target id to an existing kind.

        Raises:
            UnknownTargetError: If the kind is not registered
        """
        if kind not in self._kinds:
            raise UnknownTargetError(kind)
        self._bindings[target_id] = kind

    def kinds(self) -> List[str]:
        return list(self._kinds)

    def targets(self) -> List[str]:
        return list(self._bindings)

    def kind_for(self, target_id: str) -> str:
        """
        Get the kind a target id is bound to.

        Raises:
            UnknownTargetError: If the target id is not bound
        """
        try:
            return self._bindings[target_id]
        except KeyError:
            raise UnknownTargetError(target_id) from None

    def target_schema(self, target_kind: str) -> TargetSchema:
        try:
            return self._kinds[target_kind]
        except KeyError:
            raise UnknownTargetError(target_kind) from None

    def layers(self, target_kind: str) -> List[Optional[str]]:
        return list(self.target_schema(target_kind).layers)

    def default_layer(self, target_kind: str) -> Optional[str]:
        return self.target_schema(target_kind).default_layer

    def resolve(self, target_id: str, layer_id: Optional[str] = None) -> Tuple[str, Optional[str]]:
        """
        Resolve an address to (kind, layer).

        A layered target addressed without a layer resolves to its default
        layer. A single-layer target only accepts layer None.

        Raises:
            UnknownTargetError: If the target is unbound or the layer undeclared
        """
        kind = self.kind_for(target_id)
        target = self._kinds[kind]
        if layer_id is None:
            return kind, target.default_layer
        if layer_id not in target.layers:
            raise UnknownTargetError(target_id, layer_id)
        return kind, layer_id

    def _layer(self, target_kind: str, layer_id: Optional[str]) -> LayerSchema:
        target = self.target_schema(target_kind)
        if layer_id is None:
            layer_id = target.default_layer
        try:
            return target.layers[layer_id]
        except KeyError:
            raise UnknownTargetError(target_kind, layer_id) from None

    def get_defaults(self, target_kind: str, layer_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a fresh, fully populated property bag of defaults."""
        return self._layer(target_kind, layer_id).defaults()

    def recognized_keys(self, target_kind: str, layer_id: Optional[str] = None) -> List[str]:
        return list(self._layer(target_kind, layer_id).properties)

    def is_recognized(self, target_kind: str, layer_id: Optional[str], key: str) -> bool:
        """Check whether a key is recognized. Unknown kinds/layers recognize nothing."""
        try:
            layer = self._layer(target_kind, layer_id)
        except UnknownTargetError:
            return False
        return key in layer.properties

    def spec_for(self, target_kind: str, layer_id: Optional[str], key: str) -> PropertySpec:
        """
        Get the spec for a key.

        Raises:
            UnknownPropertyError: If the key is not recognized
        """
        if not self.is_recognized(target_kind, layer_id, key):
            raise UnknownPropertyError(target_kind, layer_id, key)
        return self._layer(target_kind, layer_id).properties[key]

    def validate(
        self, target_kind: str, layer_id: Optional[str], key: str, value: Any
    ) -> Tuple[Any, bool]:
        """
        Validate a write.

        Returns:
            (value_to_store, clamped)

        Raises:
            UnknownPropertyError: If the key is not recognized
            InvalidPropertyValueError: If the value has the wrong type/format
        """
        return self.spec_for(target_kind, layer_id, key).coerce(value)

    def clamp(self, target_kind: str, layer_id: Optional[str], key: str, value: Any) -> Any:
        """
        Clamp a value into the key's range.

        Idempotent: clamp(clamp(v)) == clamp(v).
        """
        return self.validate(target_kind, layer_id, key, value)[0]


# =============================================================================
# Built-in Schema
# =============================================================================

def _scalar(key: str, lo: float, hi: float) -> PropertySpec:
    return PropertySpec(key=key, kind=PropertyKind.SCALAR, default=lo, min=lo, max=hi)


def _color(key: str) -> PropertySpec:
    return PropertySpec(key=key, kind=PropertyKind.COLOR, default="#FFFFFF")


# Ranges as exposed by the material editor sliders
PROPERTY_LIBRARY: Dict[str, PropertySpec] = {
    spec.key: spec
    for spec in [
        PropertySpec(
            key="materialType",
            kind=PropertyKind.CHOICE,
            default=MaterialType.GLASS.value,
            choices=tuple(t.value for t in MaterialType),
        ),
        _color("color"),
        _scalar("metalness", 0.0, 1.0),
        _scalar("roughness", 0.0, 1.0),
        _scalar("transmission", 0.0, 1.0),
        _scalar("opacity", 0.0, 1.0),
        _scalar("ior", 1.0, 2.5),
        _scalar("thickness", 0.0, 1.0),
        _scalar("envMapIntensity", 0.0, 2.0),
        _scalar("clearcoat", 0.0, 1.0),
        _scalar("clearcoatRoughness", 0.0, 1.0),
        _scalar("sheen", 0.0, 1.0),
        _color("sheenColor"),
        _scalar("sheenRoughness", 0.0, 1.0),
        _color("emissive"),
        _scalar("emissiveIntensity", 0.0, 5.0),
        _scalar("dispersion", 0.0, 1.0),
        _scalar("causticsIntensity", 0.0, 1.0),
        _scalar("surfaceNoise", 0.0, 1.0),
        _scalar("aberration", 0.0, 1.0),
        _scalar("fresnelPower", 0.0, 5.0),
    ]
}


def layer_from_defaults(defaults: Dict[str, Any]) -> LayerSchema:
    """Build a layer from library specs, overriding each default."""
    return LayerSchema(properties={
        key: replace(PROPERTY_LIBRARY[key], default=value)
        for key, value in defaults.items()
    })


GLASS_CHIP_DEFAULTS: Dict[str, Any] = {
    "materialType": "glass",
    "color": "#6EC1FF",
    "metalness": 0.0,
    "roughness": 0.55,
    "transmission": 0.85,
    "opacity": 0.85,
    "ior": 1.45,
    "thickness": 0.35,
    "envMapIntensity": 0.4,
    "clearcoat": 0.15,
    "clearcoatRoughness": 0.25,
    "sheen": 0.5,
    "sheenColor": "#FFFFFF",
    "sheenRoughness": 0.2,
    "emissive": "#000000",
    "emissiveIntensity": 0.0,
    "dispersion": 0.0,
    "causticsIntensity": 0.0,
    "surfaceNoise": 0.0,
    "aberration": 0.0,
    "fresnelPower": 1.0,
}

GLOWING_BUTTON_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "outerShell": {
        "materialType": "glass",
        "color": "#005FFF",
        "metalness": 0.0,
        "roughness": 0.6,
        "transmission": 0.95,
        "opacity": 0.65,
        "ior": 1.5,
        "thickness": 0.8,
        "envMapIntensity": 0.8,
        "clearcoat": 0.4,
        "clearcoatRoughness": 0.3,
        "emissive": "#000000",
        "emissiveIntensity": 0.0,
    },
    # Inner layers sit behind the shell: no clearcoat
    "innerCore": {
        "materialType": "glow",
        "color": "#00FFFF",
        "metalness": 0.0,
        "roughness": 0.8,
        "transmission": 0.5,
        "opacity": 1.0,
        "ior": 1.5,
        "thickness": 0.3,
        "envMapIntensity": 0.1,
        "emissive": "#00BFFF",
        "emissiveIntensity": 3.0,
    },
    "innermostSpark": {
        "materialType": "glow",
        "color": "#FFFFFF",
        "metalness": 0.0,
        "roughness": 0.3,
        "transmission": 0.0,
        "opacity": 1.0,
        "emissive": "#FFFFFF",
        "emissiveIntensity": 4.5,
    },
}


def build_default_schema() -> PropertySchema:
    """Build the schema for the built-in glassChip and glowingButton targets."""
    return PropertySchema(targets=[
        TargetSchema(
            kind="glassChip",
            layers={None: layer_from_defaults(GLASS_CHIP_DEFAULTS)},
        ),
        TargetSchema(
            kind="glowingButton",
            layers={
                layer_id: layer_from_defaults(defaults)
                for layer_id, defaults in GLOWING_BUTTON_DEFAULTS.items()
            },
        ),
    ])
