"""
Built-in material presets.

These are seeded into the durable catalog exactly once, on first
initialization, and serve as the fallback catalog when durable storage
is unavailable. Preset ids are stable and must never be reused for
user-created entries.
"""

from typing import Any, Dict, List

from .models import CatalogEntry


_GLSL_VERTEX = """
varying vec2 vUv;
varying vec3 vNormal;

void main() {
  vUv = uv;
  vNormal = normalize(normalMatrix * normal);
  gl_Position = projectionMatrix * modelViewMatrix * vec4(position, 1.0);
}"""

_GLSL_FRAGMENT = """
uniform vec3 color;
uniform float time;
varying vec2 vUv;
varying vec3 vNormal;

void main() {
  vec3 light = normalize(vec3(1.0, 1.0, 1.0));
  float intensity = dot(vNormal, light) * 0.5 + 0.5;
  vec3 finalColor = color * intensity;
  finalColor += vec3(vUv.x * 0.5, vUv.y * 0.5, sin(time) * 0.5 + 0.5) * 0.2;
  gl_FragColor = vec4(finalColor, 1.0);
}"""


# preset_id -> {name, type, properties}
PRESET_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    # Glass
    "frosted-blue-glass": {
        "name": "Frosted Blue Glass",
        "type": "glass",
        "properties": {
            "color": "#6EC1FF", "metalness": 0.0, "roughness": 0.55,
            "transmission": 0.85, "opacity": 0.85, "ior": 1.45,
            "thickness": 0.35, "envMapIntensity": 0.4, "clearcoat": 0.15,
            "clearcoatRoughness": 0.25, "emissive": "#000000",
            "emissiveIntensity": 0.0,
        },
    },
    "clear-glass": {
        "name": "Clear Glass",
        "type": "glass",
        "properties": {
            "color": "#FFFFFF", "metalness": 0.0, "roughness": 0.15,
            "transmission": 0.95, "opacity": 0.9, "ior": 1.5,
            "thickness": 0.2, "envMapIntensity": 0.5, "clearcoat": 0.5,
            "clearcoatRoughness": 0.1, "emissive": "#000000",
            "emissiveIntensity": 0.0,
        },
    },
    "macos-dark-glass": {
        "name": "macOS Dark Glass",
        "type": "glass",
        "properties": {
            "color": "#1A1A1A", "metalness": 0.0, "roughness": 0.3,
            "transmission": 0.7, "opacity": 0.8, "ior": 1.4,
            "thickness": 0.3, "envMapIntensity": 0.6, "clearcoat": 0.2,
            "clearcoatRoughness": 0.2, "emissive": "#000000",
            "emissiveIntensity": 0.0,
        },
    },
    "crystal-glass": {
        "name": "Crystal Glass",
        "type": "glass",
        "properties": {
            "color": "#FFFFFF", "metalness": 0.1, "roughness": 0.05,
            "transmission": 0.98, "opacity": 0.95, "ior": 2.0,
            "thickness": 0.2, "envMapIntensity": 0.8, "clearcoat": 0.8,
            "clearcoatRoughness": 0.05, "emissive": "#FFFFFF",
            "emissiveIntensity": 0.05,
        },
    },
    "tinted-glass": {
        "name": "Tinted Glass",
        "type": "glass",
        "properties": {
            "color": "#2A4858", "metalness": 0.0, "roughness": 0.1,
            "transmission": 0.9, "opacity": 0.85, "ior": 1.5,
            "thickness": 0.3, "envMapIntensity": 0.6, "clearcoat": 0.4,
            "clearcoatRoughness": 0.1, "emissive": "#000000",
            "emissiveIntensity": 0.0,
        },
    },
    "dichroic-glass": {
        "name": "Dichroic Glass",
        "type": "glass",
        "properties": {
            "color": "#FF00FF", "metalness": 0.3, "roughness": 0.1,
            "transmission": 0.9, "opacity": 0.8, "ior": 1.7,
            "thickness": 0.25, "envMapIntensity": 1.0, "clearcoat": 0.9,
            "clearcoatRoughness": 0.05, "emissive": "#00FFFF",
            "emissiveIntensity": 0.3,
        },
    },
    "textured-glass": {
        "name": "Textured Glass",
        "type": "glass",
        "properties": {
            "color": "#FFFFFF", "metalness": 0.1, "roughness": 0.4,
            "transmission": 0.8, "opacity": 0.9, "ior": 1.5,
            "thickness": 0.4, "envMapIntensity": 0.5, "clearcoat": 0.6,
            "clearcoatRoughness": 0.3, "emissive": "#000000",
            "emissiveIntensity": 0.0,
        },
    },
    # Metal
    "silver-metal": {
        "name": "Silver Metal",
        "type": "metal",
        "properties": {
            "color": "#E8E8E8", "metalness": 0.9, "roughness": 0.15,
            "transmission": 0.0, "opacity": 1.0, "envMapIntensity": 1.0,
            "clearcoat": 0.8, "clearcoatRoughness": 0.1,
            "emissive": "#000000", "emissiveIntensity": 0.0,
        },
    },
    "gold-metal": {
        "name": "Gold Metal",
        "type": "metal",
        "properties": {
            "color": "#FFD700", "metalness": 1.0, "roughness": 0.15,
            "transmission": 0.0, "opacity": 1.0, "envMapIntensity": 1.0,
            "clearcoat": 0.5, "clearcoatRoughness": 0.1,
            "emissive": "#000000", "emissiveIntensity": 0.0,
        },
    },
    "brushed-aluminum": {
        "name": "Brushed Aluminum",
        "type": "metal",
        "properties": {
            "color": "#B8B8B8", "metalness": 0.8, "roughness": 0.5,
            "transmission": 0.0, "opacity": 1.0, "envMapIntensity": 0.8,
            "clearcoat": 0.2, "clearcoatRoughness": 0.2,
            "emissive": "#000000", "emissiveIntensity": 0.0,
        },
    },
    # Plastic
    "glossy-plastic": {
        "name": "Glossy Plastic",
        "type": "plastic",
        "properties": {
            "color": "#4287F5", "metalness": 0.0, "roughness": 0.2,
            "transmission": 0.1, "opacity": 1.0, "envMapIntensity": 0.5,
            "clearcoat": 1.0, "clearcoatRoughness": 0.1,
            "emissive": "#000000", "emissiveIntensity": 0.0,
        },
    },
    "matte-plastic": {
        "name": "Matte Plastic",
        "type": "plastic",
        "properties": {
            "color": "#4287F5", "metalness": 0.0, "roughness": 0.9,
            "transmission": 0.0, "opacity": 1.0, "envMapIntensity": 0.2,
            "clearcoat": 0.0, "clearcoatRoughness": 0.0,
            "emissive": "#000000", "emissiveIntensity": 0.0,
        },
    },
    # Pattern (extra keys are read by specialized renderers only)
    "metal-grid": {
        "name": "Metal Grid",
        "type": "pattern",
        "properties": {
            "color": "#B8B8B8", "metalness": 0.9, "roughness": 0.3,
            "transmission": 0.0, "opacity": 1.0, "envMapIntensity": 1.0,
            "clearcoat": 0.5, "clearcoatRoughness": 0.2,
            "emissive": "#3366FF", "emissiveIntensity": 0.2,
            "pattern": "grid", "gridSize": 0.05, "gridWidth": 0.01,
        },
    },
    "perforated": {
        "name": "Perforated Metal",
        "type": "pattern",
        "properties": {
            "color": "#DEDEDE", "metalness": 0.8, "roughness": 0.2,
            "transmission": 0.3, "opacity": 0.9, "envMapIntensity": 0.9,
            "clearcoat": 0.3, "clearcoatRoughness": 0.2,
            "emissive": "#000000", "emissiveIntensity": 0.0,
            "pattern": "dots", "dotSize": 0.03, "dotSpacing": 0.07,
        },
    },
    # Three.js material families
    "basic-red": {
        "name": "Basic Red",
        "type": "basic",
        "properties": {
            "color": "#FF0000", "wireframe": False, "transparent": False,
            "opacity": 1.0,
        },
    },
    "standard-blue": {
        "name": "Standard Blue",
        "type": "standard",
        "properties": {
            "color": "#0000FF", "metalness": 0.5, "roughness": 0.5,
            "emissive": "#000000", "emissiveIntensity": 0.0,
            "envMapIntensity": 1.0, "transparent": False, "opacity": 1.0,
        },
    },
    "normal-map": {
        "name": "Normal Map",
        "type": "normal",
        "properties": {
            "opacity": 1.0, "transparent": False, "flatShading": False,
        },
    },
    "matcap-gold": {
        "name": "Gold Matcap",
        "type": "matcap",
        "properties": {
            "color": "#FFFFFF", "matcap": "matcap-gold", "transparent": False,
            "opacity": 1.0,
        },
    },
    "neon-glow": {
        "name": "Neon Glow",
        "type": "glow",
        "properties": {
            "color": "#00FFFF", "intensity": 1.5, "power": 2.0,
            "transparent": True,
        },
    },
    "sunset-gradient": {
        "name": "Sunset Gradient",
        "type": "gradient",
        "properties": {
            "colorTop": "#FF5500", "colorBottom": "#0033FF", "exponent": 0.5,
            "transparent": True, "opacity": 0.9,
        },
    },
    "custom-shader": {
        "name": "Custom Shader",
        "type": "shader",
        "properties": {
            "vertexShader": _GLSL_VERTEX,
            "fragmentShader": _GLSL_FRAGMENT,
            "transparent": False,
        },
    },
}


def builtin_presets() -> List[CatalogEntry]:
    """Return fresh CatalogEntry objects for every built-in preset."""
    return [
        CatalogEntry(
            id=preset_id,
            name=definition["name"],
            type=definition["type"],
            properties=dict(definition["properties"]),
            is_preset=True,
        )
        for preset_id, definition in PRESET_DEFINITIONS.items()
    ]


def is_builtin_id(entry_id: str) -> bool:
    return entry_id in PRESET_DEFINITIONS
