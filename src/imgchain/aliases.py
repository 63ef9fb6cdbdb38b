from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .types import Family


@dataclass(frozen=True)
class AliasEntry:
    family: Family
    variant: str
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def merged(self, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        out = dict(self.defaults)
        out.update(params or {})
        return out


# Flat effect names, with the defaults the editor UI has always sent.
_EFFECT_DEFAULTS: Tuple[Tuple[str, Dict[str, Any]], ...] = (
    ("grayscale", {"method": "Rec601Luma", "intensity": 100}),
    ("sepia", {"intensity": 80}),
    ("negate", {}),
    ("blur", {"radius": 5, "sigma": 5}),
    ("gaussian-blur", {"radius": 5}),
    ("motion-blur", {"radius": 10, "angle": 0}),
    ("sharpen", {"radius": 1, "amount": 1}),
    ("unsharp", {"radius": 1, "amount": 1, "threshold": 0.05}),
    ("charcoal", {"radius": 1, "sigma": 0.5}),
    ("oil-painting", {"radius": 3}),
    ("sketch", {"radius": 1, "sigma": 0.5}),
    ("emboss", {"radius": 1, "sigma": 0.5}),
    ("edge", {"radius": 1}),
    ("posterize", {"levels": 4}),
    ("pixelate", {"size": 10}),
    ("mosaic", {"size": 10}),
    ("brightness", {"value": 0}),
    ("contrast", {"value": 0}),
    ("saturation", {"value": 0}),
    ("hue", {"value": 0}),
    ("colorize", {"color": "#FF0000", "intensity": 50}),
    ("tint", {"color": "#FFD700", "intensity": 50}),
    ("noise", {"noiseType": "Uniform"}),
    ("despeckle", {}),
    ("texture", {"texture": "granite:", "opacity": 30}),
    ("vignette", {"radius": 100, "sigma": 50}),
    ("solarize", {"threshold": 50}),
    ("swirl", {"degrees": 90}),
    ("wave", {"amplitude": 25, "wavelength": 150}),
    ("implode", {"amount": 0.5}),
    ("explode", {"amount": 0.5}),
    ("spread", {"radius": 3}),
    ("normalize", {}),
    ("equalize", {}),
    ("gamma", {"value": 1.0}),
    ("threshold", {"value": 50}),
    ("quantize", {"colors": 256}),
    ("adaptive-blur", {"radius": 0, "sigma": 2}),
    ("adaptive-sharpen", {"radius": 0, "sigma": 2}),
    ("morphology", {"method": "Dilate", "kernel": "Disk", "iterations": 1}),
    ("colorspace", {"colorspace": "Gray"}),
    ("auto-level", {}),
    ("auto-gamma", {}),
    ("auto-contrast", {"black": 2, "white": 1}),
    ("color-matrix", {"matrix": "1 0 0 0 1 0 0 0 1"}),
    ("distort", {"method": "Barrel", "args": "0.0 0.0 0.0 1.0"}),
    ("fx", {"expression": "u"}),
)

# Underscore names from the first version of the API, before the
# filter-/effects- prefixes existed.
_LEGACY_FILTER_DEFAULTS: Tuple[Tuple[str, str, Dict[str, Any]], ...] = (
    ("filter_blur", "blur", {"intensity": 1}),
    ("filter_sharpen", "sharpen", {"intensity": 1}),
    ("filter_emboss", "emboss", {"intensity": 1}),
    ("filter_edge", "edge", {"intensity": 1}),
    ("filter_charcoal", "charcoal", {"intensity": 1}),
    ("filter_oil_painting", "oil-painting", {"intensity": 1}),
    ("filter_sepia", "sepia", {"intensity": 80}),
    ("filter_grayscale", "grayscale", {"intensity": 1}),
    ("filter_negate", "negate", {"intensity": 1}),
)


def build_alias_table(extra: Optional[Iterable[Tuple[str, AliasEntry]]] = None) -> Mapping[str, AliasEntry]:
    """Build the read-only alias lookup used by the normalizer.

    `extra` entries are added last and win over the built-in ones.
    """
    table: Dict[str, AliasEntry] = {}
    for name, defaults in _EFFECT_DEFAULTS:
        table[name] = AliasEntry(family=Family.EFFECT, variant=name, defaults=MappingProxyType(dict(defaults)))
    for name, variant, defaults in _LEGACY_FILTER_DEFAULTS:
        table[name] = AliasEntry(family=Family.FILTER, variant=variant, defaults=MappingProxyType(dict(defaults)))
    for name, entry in extra or ():
        table[name] = entry
    return MappingProxyType(table)


DEFAULT_ALIASES: Mapping[str, AliasEntry] = build_alias_table()
