from __future__ import annotations

import asyncio
import logging
import math
import shlex
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import EngineInvocationError
from .options import (
    AdjustOptions,
    ConvertOptions,
    CropOptions,
    EffectSpec,
    ExtentOptions,
    FilterOptions,
    ResizeOptions,
    RotateOptions,
    ShapeCropOptions,
    TrimOptions,
    WatermarkOptions,
)
from .utils.coerce import coerce_float, coerce_int, coerce_str

_GRAVITY = {
    "top-left": "NorthWest",
    "top": "North",
    "top-right": "NorthEast",
    "left": "West",
    "center": "Center",
    "right": "East",
    "bottom-left": "SouthWest",
    "bottom": "South",
    "bottom-right": "SouthEast",
}

_WATERMARK_MARGIN = 10


def _fmt(value: float) -> str:
    return f"{value:g}"


def _gravity(name: str) -> str:
    return _GRAVITY.get(name.strip().lower(), name)


def _with_opacity(color: str, opacity: float) -> str:
    """Turn #RGB / #RRGGBB into an rgba() colour carrying `opacity`."""
    c = color.strip()
    if c.startswith("#") and len(c) in (4, 7):
        digits = c[1:]
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        try:
            r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        except ValueError:
            return c
        return f"rgba({r},{g},{b},{_fmt(max(0.0, min(1.0, opacity)))})"
    return c


# --- shape masks ------------------------------------------------------------


def _regular_polygon(cx: float, cy: float, rx: float, ry: float, sides: int, rotation: float = -90.0) -> List[Tuple[float, float]]:
    pts = []
    for i in range(sides):
        a = math.radians(rotation + 360.0 * i / sides)
        pts.append((cx + rx * math.cos(a), cy + ry * math.sin(a)))
    return pts


def _star(cx: float, cy: float, rx: float, ry: float, points: int = 5, inner: float = 0.382) -> List[Tuple[float, float]]:
    pts = []
    for i in range(points * 2):
        scale = 1.0 if i % 2 == 0 else inner
        a = math.radians(-90.0 + 180.0 * i / points)
        pts.append((cx + rx * scale * math.cos(a), cy + ry * scale * math.sin(a)))
    return pts


def _heart(cx: float, cy: float, rx: float, ry: float, steps: int = 48) -> List[Tuple[float, float]]:
    pts = []
    for i in range(steps):
        t = 2 * math.pi * i / steps
        x = 16 * math.sin(t) ** 3
        y = 13 * math.cos(t) - 5 * math.cos(2 * t) - 2 * math.cos(3 * t) - math.cos(4 * t)
        # the parametric heart spans roughly x in [-16, 16], y in [-17, 12]
        pts.append((cx + rx * x / 16.0, cy - ry * (y + 2.5) / 14.5))
    return pts


def _polygon(pts: Sequence[Tuple[float, float]]) -> str:
    return "polygon " + " ".join(f"{x:.1f},{y:.1f}" for x, y in pts)


def shape_draw_command(shape: str, width: int, height: int) -> str:
    """ImageMagick -draw primitive for `shape` inscribed in a width x height box."""
    cx, cy = (width - 1) / 2.0, (height - 1) / 2.0
    rx, ry = width / 2.0, height / 2.0
    s = shape.strip().lower()
    if s == "circle":
        r = min(rx, ry)
        return f"circle {cx:.1f},{cy:.1f} {cx:.1f},{cy - r + 0.5:.1f}"
    if s == "ellipse":
        return f"ellipse {cx:.1f},{cy:.1f} {rx:.1f},{ry:.1f} 0,360"
    if s == "triangle":
        return _polygon([(cx, 0.0), (width - 1.0, height - 1.0), (0.0, height - 1.0)])
    if s == "diamond":
        return _polygon([(cx, 0.0), (width - 1.0, cy), (cx, height - 1.0), (0.0, cy)])
    if s == "hexagon":
        return _polygon(_regular_polygon(cx, cy, rx, ry, 6, rotation=0.0))
    if s == "octagon":
        return _polygon(_regular_polygon(cx, cy, rx, ry, 8, rotation=22.5))
    if s == "star":
        return _polygon(_star(cx, cy, rx, ry))
    if s == "heart":
        return _polygon(_heart(cx, cy, rx, ry))
    raise EngineInvocationError(f"Unsupported shape: {shape}", family="shapeCrop")


# --- filters and effects ----------------------------------------------------


def _filter_args(name: str, intensity: float) -> List[str]:
    i = _fmt(intensity)
    table: Dict[str, List[str]] = {
        "blur": ["-blur", f"0x{i}"],
        "sharpen": ["-sharpen", f"0x{i}"],
        "emboss": ["-emboss", i],
        "edge": ["-edge", i],
        "charcoal": ["-charcoal", i],
        "oil-painting": ["-paint", i],
        "sepia": ["-sepia-tone", f"{i}%"],
        "grayscale": ["-colorspace", "Gray"],
        "negate": ["-negate"],
    }
    if name not in table:
        raise EngineInvocationError(f"Unsupported filter: {name}", family="filter")
    return table[name]


def _num(params: Mapping[str, Any], key: str, default: float) -> str:
    return _fmt(coerce_float(params.get(key), default))


def _grayscale(p: Mapping[str, Any]) -> List[str]:
    intensity = coerce_float(p.get("intensity"), 100.0)
    if intensity >= 100:
        return ["-grayscale", coerce_str(p.get("method"), "Rec601Luma")]
    return ["-modulate", f"100,{_fmt(max(0.0, 100.0 - intensity))},100"]


def _pixelate(p: Mapping[str, Any], op: str) -> List[str]:
    size = max(1, coerce_int(p.get("size"), 10))
    return [op, f"{_fmt(100.0 / size)}%", op, f"{size * 100}%"]


_EFFECTS: Dict[str, Callable[[Mapping[str, Any]], List[str]]] = {
    "grayscale": _grayscale,
    "sepia": lambda p: ["-sepia-tone", f"{_num(p, 'intensity', 80)}%"],
    "negate": lambda p: ["-negate"],
    "blur": lambda p: ["-blur", f"{_num(p, 'radius', 5)}x{_num(p, 'sigma', 5)}"],
    "gaussian-blur": lambda p: ["-gaussian-blur", f"0x{_num(p, 'radius', 5)}"],
    "motion-blur": lambda p: ["-motion-blur", f"0x{_num(p, 'radius', 10)}+{_num(p, 'angle', 0)}"],
    "sharpen": lambda p: ["-sharpen", f"{_num(p, 'radius', 1)}x{_num(p, 'amount', 1)}"],
    "unsharp": lambda p: [
        "-unsharp",
        f"0x{_num(p, 'radius', 1)}+{_num(p, 'amount', 1)}+{_num(p, 'threshold', 0.05)}",
    ],
    "charcoal": lambda p: ["-charcoal", f"{_num(p, 'radius', 1)}x{_num(p, 'sigma', 0.5)}"],
    "oil-painting": lambda p: ["-paint", _num(p, "radius", 3)],
    "sketch": lambda p: ["-sketch", f"{_num(p, 'radius', 1)}x{_num(p, 'sigma', 0.5)}+45"],
    "emboss": lambda p: ["-emboss", f"{_num(p, 'radius', 1)}x{_num(p, 'sigma', 0.5)}"],
    "edge": lambda p: ["-edge", _num(p, "radius", 1)],
    "posterize": lambda p: ["-posterize", _num(p, "levels", 4)],
    "pixelate": lambda p: _pixelate(p, "-sample"),
    "mosaic": lambda p: _pixelate(p, "-scale"),
    "brightness": lambda p: ["-brightness-contrast", f"{_num(p, 'value', 0)}x0"],
    "contrast": lambda p: ["-brightness-contrast", f"0x{_num(p, 'value', 0)}"],
    "saturation": lambda p: ["-modulate", f"100,{_fmt(100 + coerce_float(p.get('value'), 0.0))},100"],
    "hue": lambda p: ["-modulate", f"100,100,{_fmt(100 + coerce_float(p.get('value'), 0.0))}"],
    "colorize": lambda p: [
        "-fill", coerce_str(p.get("color"), "#FF0000"), "-colorize", f"{_num(p, 'intensity', 50)}%",
    ],
    "tint": lambda p: ["-fill", coerce_str(p.get("color"), "#FFD700"), "-tint", _num(p, "intensity", 50)],
    "noise": lambda p: ["+noise", coerce_str(p.get("noiseType"), "Uniform")],
    "despeckle": lambda p: ["-despeckle"],
    "texture": lambda p: [
        "(", "+clone", "-tile", coerce_str(p.get("texture"), "granite:"), "-draw", "color 0,0 reset", ")",
        "-compose", "blend", "-define", f"compose:args={_num(p, 'opacity', 30)}", "-composite",
    ],
    "vignette": lambda p: ["-background", "black", "-vignette", f"{_num(p, 'radius', 100)}x{_num(p, 'sigma', 50)}"],
    "solarize": lambda p: ["-solarize", f"{_num(p, 'threshold', 50)}%"],
    "swirl": lambda p: ["-swirl", _num(p, "degrees", 90)],
    "wave": lambda p: ["-wave", f"{_num(p, 'amplitude', 25)}x{_num(p, 'wavelength', 150)}"],
    "implode": lambda p: ["-implode", _num(p, "amount", 0.5)],
    "explode": lambda p: ["-implode", _fmt(-abs(coerce_float(p.get("amount"), 0.5)))],
    "spread": lambda p: ["-spread", _num(p, "radius", 3)],
    "normalize": lambda p: ["-normalize"],
    "equalize": lambda p: ["-equalize"],
    "gamma": lambda p: ["-gamma", _num(p, "value", 1.0)],
    "threshold": lambda p: ["-threshold", f"{_num(p, 'value', 50)}%"],
    "quantize": lambda p: ["-colors", _num(p, "colors", 256)],
    "adaptive-blur": lambda p: ["-adaptive-blur", f"{_num(p, 'radius', 0)}x{_num(p, 'sigma', 2)}"],
    "adaptive-sharpen": lambda p: ["-adaptive-sharpen", f"{_num(p, 'radius', 0)}x{_num(p, 'sigma', 2)}"],
    "morphology": lambda p: [
        "-morphology",
        f"{coerce_str(p.get('method'), 'Dilate')}:{_num(p, 'iterations', 1)}",
        coerce_str(p.get("kernel"), "Disk"),
    ],
    "colorspace": lambda p: ["-colorspace", coerce_str(p.get("colorspace"), "Gray")],
    "auto-level": lambda p: ["-auto-level"],
    "auto-gamma": lambda p: ["-auto-gamma"],
    "auto-contrast": lambda p: ["-contrast-stretch", f"{_num(p, 'black', 2)}%x{_num(p, 'white', 1)}%"],
    "color-matrix": lambda p: ["-color-matrix", coerce_str(p.get("matrix"), "1 0 0 0 1 0 0 0 1")],
    "distort": lambda p: [
        "-distort", coerce_str(p.get("method"), "Barrel"), coerce_str(p.get("args"), "0.0 0.0 0.0 1.0"),
    ],
    "fx": lambda p: ["-fx", coerce_str(p.get("expression"), "u")],
}

SUPPORTED_FILTERS = ("blur", "sharpen", "emboss", "edge", "charcoal", "oil-painting", "sepia", "grayscale", "negate")
SUPPORTED_EFFECTS = tuple(_EFFECTS)


def effect_args(effect: EffectSpec) -> List[str]:
    handler = _EFFECTS.get(effect.type)
    if handler is None:
        raise EngineInvocationError(f"Unsupported effect: {effect.type}", family="effect")
    return handler(effect.params)


# --- engine -----------------------------------------------------------------


class MagickEngine:
    """ImageMagick command-line engine; one subprocess per call."""

    def __init__(self, binary: Optional[str] = None):
        self.log = logging.getLogger("imgchain.magick")
        self._binary = binary

    @property
    def binary(self) -> str:
        if self._binary:
            return self._binary
        found = shutil.which("magick") or shutil.which("convert")
        if not found:
            raise EngineInvocationError(
                "ImageMagick not found on PATH. Install it from https://imagemagick.org/script/download.php"
            )
        self._binary = found
        return found

    async def _exec(self, argv: Sequence[str]) -> Tuple[int, str, str]:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return proc.returncode or 0, stdout.decode("utf-8", "replace"), stderr.decode("utf-8", "replace")

    async def run(self, family: str, input_path: Path, output_path: Path, args: Sequence[str]) -> str:
        argv = [self.binary, str(input_path), *args, str(output_path)]
        command = shlex.join(argv)
        self.log.debug("[magick] %s", command)
        try:
            code, _, stderr = await self._exec(argv)
        except OSError as exc:
            raise EngineInvocationError(f"{family}: could not start ImageMagick: {exc}", family=family, command=command) from exc
        if code != 0:
            detail = stderr.strip() or f"exit code {code}"
            raise EngineInvocationError(f"{family} failed: {detail}", family=family, command=command, stderr=stderr)
        return command

    async def check_installation(self) -> Dict[str, Any]:
        try:
            binary = self.binary
            code, stdout, stderr = await self._exec([binary, "-version"])
        except (EngineInvocationError, OSError) as exc:
            return {"installed": False, "error": str(exc)}
        if code != 0:
            return {"installed": False, "binary": binary, "error": stderr.strip()}
        first = stdout.splitlines()[0] if stdout else ""
        version = first.split("ImageMagick", 1)[-1].split()[0] if "ImageMagick" in first else first
        return {"installed": True, "binary": binary, "version": version}

    # --- families ---

    async def resize(self, input_path: Path, output_path: Path, options: ResizeOptions) -> str:
        geometry = f"{options.width or ''}x{options.height or ''}"
        if not options.maintain_aspect_ratio and options.width and options.height:
            geometry += "!"
        return await self.run("resize", input_path, output_path, ["-resize", geometry, "-quality", str(options.quality)])

    async def crop(self, input_path: Path, output_path: Path, options: CropOptions) -> str:
        geometry = f"{options.width}x{options.height}+{options.x}+{options.y}"
        return await self.run("crop", input_path, output_path, ["-crop", geometry, "+repage"])

    async def shape_crop(self, input_path: Path, output_path: Path, options: ShapeCropOptions) -> str:
        w, h = options.width, options.height
        if options.x is None or options.y is None:
            region = ["-gravity", "center", "-crop", f"{w}x{h}+0+0", "+repage", "-gravity", "NorthWest"]
        else:
            left, top = options.x - w // 2, options.y - h // 2
            region = ["-crop", f"{w}x{h}{left:+d}{top:+d}", "+repage"]
        args = region + [
            "-background", "none", "-extent", f"{w}x{h}",
            "(", "-size", f"{w}x{h}", "xc:black", "-fill", "white", "-draw", shape_draw_command(options.shape, w, h), ")",
            "-alpha", "off", "-compose", "CopyOpacity", "-composite",
        ]
        if options.background_color.lower() not in ("transparent", "none"):
            args += ["-compose", "Over", "-background", options.background_color, "-flatten"]
        return await self.run("shapeCrop", input_path, output_path, args)

    async def rotate(self, input_path: Path, output_path: Path, options: RotateOptions) -> str:
        args = ["-background", options.background_color, "-rotate", _fmt(options.degrees)]
        return await self.run("rotate", input_path, output_path, args)

    async def convert(self, input_path: Path, output_path: Path, options: ConvertOptions) -> str:
        return await self.run("convert", input_path, output_path, ["-quality", str(options.quality)])

    async def watermark(self, input_path: Path, output_path: Path, options: WatermarkOptions) -> str:
        if options.x is not None and options.y is not None:
            gravity, offset = "NorthWest", f"+{options.x}+{options.y}"
        else:
            gravity = _gravity(options.position)
            margin = 0 if gravity == "Center" else _WATERMARK_MARGIN
            offset = f"+{margin}+{margin}"

        if options.type == "image":
            args = [
                "(", str(options.image_path), "-resize", f"{_fmt(options.image_scale * 100)}%",
                "-alpha", "set", "-channel", "A", "-evaluate", "multiply", _fmt(options.opacity), "+channel", ")",
                "-gravity", gravity, "-geometry", offset, "-composite",
            ]
        else:
            args = [
                "-gravity", gravity,
                "-font", options.font_family,
                "-pointsize", str(options.font_size),
                "-fill", _with_opacity(options.color, options.opacity),
            ]
            if options.stroke_color and options.stroke_width > 0:
                args += ["-stroke", _with_opacity(options.stroke_color, options.opacity), "-strokewidth", str(options.stroke_width)]
            args += ["-annotate", offset, options.text]
        return await self.run("watermark", input_path, output_path, args)

    async def adjust(self, input_path: Path, output_path: Path, options: AdjustOptions) -> str:
        args = ["-brightness-contrast", f"{_fmt(options.brightness)}x{_fmt(options.contrast)}"]
        if options.saturation:
            args += ["-modulate", f"100,{_fmt(100 + options.saturation)},100"]
        return await self.run("adjust", input_path, output_path, args)

    async def trim(self, input_path: Path, output_path: Path, options: TrimOptions) -> str:
        args = ["-fuzz", f"{_fmt(options.fuzz)}%"] if options.fuzz else []
        return await self.run("trim", input_path, output_path, args + ["-trim", "+repage"])

    async def extent(self, input_path: Path, output_path: Path, options: ExtentOptions) -> str:
        args = [
            "-gravity", _gravity(options.gravity),
            "-background", options.background_color,
            "-extent", f"{options.width}x{options.height}",
        ]
        return await self.run("extent", input_path, output_path, args)

    async def flip(self, input_path: Path, output_path: Path) -> str:
        return await self.run("flip", input_path, output_path, ["-flip"])

    async def flop(self, input_path: Path, output_path: Path) -> str:
        return await self.run("flop", input_path, output_path, ["-flop"])

    async def transpose(self, input_path: Path, output_path: Path) -> str:
        return await self.run("transpose", input_path, output_path, ["-transpose"])

    async def transverse(self, input_path: Path, output_path: Path) -> str:
        return await self.run("transverse", input_path, output_path, ["-transverse"])

    async def apply_filter(self, input_path: Path, output_path: Path, options: FilterOptions) -> str:
        return await self.run("filter", input_path, output_path, _filter_args(options.filter_type, options.intensity))

    async def apply_effects(self, input_path: Path, output_path: Path, effects: Sequence[EffectSpec]) -> str:
        args: List[str] = []
        for effect in effects:
            args += effect_args(effect)
        return await self.run("effect", input_path, output_path, args)
