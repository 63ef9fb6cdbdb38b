from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ResizeOptions:
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = 90
    maintain_aspect_ratio: bool = True


@dataclass(frozen=True)
class CropOptions:
    width: int
    height: int
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class ShapeCropOptions:
    shape: str  # circle | ellipse | star | triangle | diamond | heart | hexagon | octagon
    width: int = 200
    height: int = 200
    x: Optional[int] = None  # center; None means centered
    y: Optional[int] = None
    background_color: str = "transparent"


@dataclass(frozen=True)
class RotateOptions:
    degrees: float = 0.0
    background_color: str = "#000000"


@dataclass(frozen=True)
class ConvertOptions:
    format: str = "jpg"
    quality: int = 90


@dataclass(frozen=True)
class WatermarkOptions:
    type: str = "text"  # "text" | "image"
    text: str = ""
    font_size: int = 24
    font_family: str = "Microsoft YaHei"
    color: str = "#FFFFFF"
    stroke_color: str = ""
    stroke_width: int = 0
    image_path: Optional[Path] = None
    image_scale: float = 1.0
    position: str = "bottom-right"  # top-left | top-right | bottom-left | bottom-right | center
    x: Optional[int] = None
    y: Optional[int] = None
    opacity: float = 0.5


@dataclass(frozen=True)
class AdjustOptions:
    brightness: float = 0.0
    contrast: float = 0.0
    saturation: float = 0.0


@dataclass(frozen=True)
class TrimOptions:
    fuzz: float = 0.0


@dataclass(frozen=True)
class ExtentOptions:
    width: int
    height: int
    gravity: str = "center"
    background_color: str = "#FFFFFF"


@dataclass(frozen=True)
class FilterOptions:
    filter_type: str
    intensity: float = 1.0


@dataclass(frozen=True)
class EffectSpec:
    type: str
    params: Dict[str, Any] = field(default_factory=dict)


EffectList = List[EffectSpec]
