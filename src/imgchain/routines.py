from __future__ import annotations

from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .engine import TransformationEngine
from .errors import MissingRequiredParameterError, SourceFileNotFoundError, UnsupportedOperationTypeError
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
from .types import CanonicalOperation, Family, StepOutcome
from .utils.coerce import coerce_bool, coerce_float, coerce_int, coerce_str

Routine = Callable[[Path, Path, CanonicalOperation], Awaitable[StepOutcome]]

_FORMAT_ALIASES = {"jpeg": "jpg", "tif": "tiff"}

# Keys that steer dispatch rather than describe the effect itself.
_EFFECT_CONTROL_KEYS = ("effects", "effectType", "type")


def _required_int(family: Family, params: Mapping[str, Any], key: str) -> int:
    value = coerce_int(params.get(key), None)
    if value is None:
        raise MissingRequiredParameterError(family.value, key)
    return value


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def parse_format(fmt: object) -> Optional[str]:
    """Lower-cased extension without the dot, or None when `fmt` is not a bare alphanumeric name."""
    text = (coerce_str(fmt, "") or "").lower().lstrip(".")
    if not text.isascii() or not text.isalnum():
        return None
    return _FORMAT_ALIASES.get(text, text)


def normalize_format(fmt: object) -> str:
    return parse_format(fmt) or "jpg"


class FamilyRoutines:
    """Request shaping for each operation family.

    A routine turns the merged parameter bag into typed engine options
    (defaults, coercion, required-field checks), decides the real output
    path and makes exactly one engine call.
    """

    def __init__(self, engine: TransformationEngine, *, uploads_dir: Optional[Path] = None):
        self.engine = engine
        self.uploads_dir = Path(uploads_dir) if uploads_dir is not None else None
        self._table: Dict[Family, Routine] = {
            Family.RESIZE: self.resize,
            Family.CROP: self.crop,
            Family.SHAPE_CROP: self.shape_crop,
            Family.ROTATE: self.rotate,
            Family.CONVERT: self.convert,
            Family.WATERMARK: self.watermark,
            Family.ADJUST: self.adjust,
            Family.TRIM: self.trim,
            Family.EXTENT: self.extent,
            Family.FLIP: self.flip,
            Family.FLOP: self.flop,
            Family.TRANSPOSE: self.transpose,
            Family.TRANSVERSE: self.transverse,
            Family.FILTER: self.filter,
            Family.EFFECT: self.effect,
        }
        missing = set(Family) - set(self._table)
        if missing:
            raise RuntimeError(f"no routine for families: {sorted(f.value for f in missing)}")

    def routine_for(self, op: CanonicalOperation) -> Routine:
        try:
            family = Family(op.family)
        except ValueError:
            raise UnsupportedOperationTypeError(op.family_name) from None
        return self._table[family]

    async def dispatch(self, op: CanonicalOperation, input_path: Path, output_path: Path) -> StepOutcome:
        routine = self.routine_for(op)
        return await routine(Path(input_path), Path(output_path), op)

    # --- geometry ---

    async def resize(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        width = coerce_int(p.get("width"), None)
        height = coerce_int(p.get("height"), None)
        if width is None and height is None:
            raise MissingRequiredParameterError(Family.RESIZE.value, "width")
        options = ResizeOptions(
            width=width,
            height=height,
            quality=int(_clamp(coerce_int(p.get("quality"), 90), 1, 100)),
            maintain_aspect_ratio=coerce_bool(p.get("maintainAspectRatio"), True),
        )
        command = await self.engine.resize(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def crop(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        options = CropOptions(
            width=_required_int(Family.CROP, p, "width"),
            height=_required_int(Family.CROP, p, "height"),
            x=coerce_int(p.get("x"), 0),
            y=coerce_int(p.get("y"), 0),
        )
        command = await self.engine.crop(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def shape_crop(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        shape = coerce_str(p.get("shape"), None)
        if shape is None:
            raise MissingRequiredParameterError(Family.SHAPE_CROP.value, "shape")
        options = ShapeCropOptions(
            shape=shape,
            width=coerce_int(p.get("width"), 200),
            height=coerce_int(p.get("height"), 200),
            x=coerce_int(p.get("x"), None),
            y=coerce_int(p.get("y"), None),
            background_color=coerce_str(p.get("backgroundColor"), "transparent"),
        )
        # PNG keeps the transparent corners.
        png_path = output_path.with_suffix(".png")
        command = await self.engine.shape_crop(input_path, png_path, options)
        return StepOutcome(command=command, output_path=png_path)

    async def rotate(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        options = RotateOptions(
            degrees=coerce_float(p.get("degrees"), 0.0),
            background_color=coerce_str(p.get("backgroundColor"), "#000000"),
        )
        command = await self.engine.rotate(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def trim(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        options = TrimOptions(fuzz=_clamp(coerce_float(op.params.get("fuzz"), 0.0), 0, 100))
        command = await self.engine.trim(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def extent(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        options = ExtentOptions(
            width=_required_int(Family.EXTENT, p, "width"),
            height=_required_int(Family.EXTENT, p, "height"),
            gravity=coerce_str(p.get("gravity"), "center"),
            background_color=coerce_str(p.get("backgroundColor"), "#FFFFFF"),
        )
        command = await self.engine.extent(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def flip(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        return StepOutcome(command=await self.engine.flip(input_path, output_path), output_path=output_path)

    async def flop(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        return StepOutcome(command=await self.engine.flop(input_path, output_path), output_path=output_path)

    async def transpose(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        return StepOutcome(command=await self.engine.transpose(input_path, output_path), output_path=output_path)

    async def transverse(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        return StepOutcome(command=await self.engine.transverse(input_path, output_path), output_path=output_path)

    # --- format / composition ---

    async def convert(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        fmt = normalize_format(p.get("format"))
        options = ConvertOptions(format=fmt, quality=int(_clamp(coerce_int(p.get("quality"), 90), 1, 100)))
        target = output_path.with_suffix(f".{fmt}")
        command = await self.engine.convert(input_path, target, options)
        return StepOutcome(command=command, output_path=target)

    async def watermark(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        kind = (coerce_str(p.get("type"), "text") or "text").lower()
        image_path: Optional[Path] = None
        text = coerce_str(p.get("text"), "") or ""
        if kind == "image":
            image_path = self._watermark_image(p.get("watermarkImageFilename"))
        elif not text:
            raise MissingRequiredParameterError(Family.WATERMARK.value, "text")

        options = WatermarkOptions(
            type=kind,
            text=text,
            font_size=coerce_int(p.get("fontSize"), 24),
            font_family=coerce_str(p.get("fontFamily"), "Microsoft YaHei"),
            color=coerce_str(p.get("color"), "#FFFFFF"),
            stroke_color=coerce_str(p.get("strokeColor"), ""),
            stroke_width=coerce_int(p.get("strokeWidth"), 0),
            image_path=image_path,
            image_scale=coerce_float(p.get("watermarkScale"), 1.0),
            position=coerce_str(p.get("position"), "bottom-right"),
            x=coerce_int(p.get("x"), None),
            y=coerce_int(p.get("y"), None),
            opacity=_clamp(coerce_float(p.get("opacity"), 0.5), 0.0, 1.0),
        )
        command = await self.engine.watermark(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    def _watermark_image(self, filename: object) -> Path:
        name = coerce_str(filename, None)
        if name is None:
            raise MissingRequiredParameterError(Family.WATERMARK.value, "watermarkImageFilename")
        base = self.uploads_dir or Path(".")
        # only bare names inside the uploads area
        path = base / Path(name).name
        if not path.is_file():
            raise SourceFileNotFoundError(name)
        return path

    async def adjust(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        options = AdjustOptions(
            brightness=_clamp(coerce_float(p.get("brightness"), 0.0), -100, 100),
            contrast=_clamp(coerce_float(p.get("contrast"), 0.0), -100, 100),
            saturation=_clamp(coerce_float(p.get("saturation"), 0.0), -100, 100),
        )
        command = await self.engine.adjust(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    # --- filter / effect ---

    async def filter(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        p = op.params
        filter_type = op.variant or coerce_str(p.get("filterType"), None)
        if not filter_type:
            raise MissingRequiredParameterError(Family.FILTER.value, "filterType")
        options = FilterOptions(filter_type=filter_type, intensity=coerce_float(p.get("intensity"), 1.0))
        command = await self.engine.apply_filter(input_path, output_path, options)
        return StepOutcome(command=command, output_path=output_path)

    async def effect(self, input_path: Path, output_path: Path, op: CanonicalOperation) -> StepOutcome:
        effects = self.effect_specs(op)
        command = await self.engine.apply_effects(input_path, output_path, effects)
        return StepOutcome(command=command, output_path=output_path)

    def effect_specs(self, op: CanonicalOperation) -> List[EffectSpec]:
        """Explicit `effects` list if given, else one effect from variant + params."""
        p = op.params
        raw = p.get("effects")
        if isinstance(raw, list) and raw:
            return [_effect_spec(item, index) for index, item in enumerate(raw)]

        name = op.variant or coerce_str(p.get("effectType"), None)
        if not name:
            raise MissingRequiredParameterError(Family.EFFECT.value, "effects")
        params = {k: v for k, v in p.items() if k not in _EFFECT_CONTROL_KEYS}
        return [EffectSpec(type=name, params=params)]


def _effect_spec(item: Any, index: int) -> EffectSpec:
    if isinstance(item, EffectSpec):
        return item
    if not isinstance(item, Mapping):
        raise MissingRequiredParameterError(Family.EFFECT.value, f"effects[{index}].type")
    name = coerce_str(item.get("type") or item.get("effectType"), None)
    if not name:
        raise MissingRequiredParameterError(Family.EFFECT.value, f"effects[{index}].type")
    params: Dict[str, Any] = {}
    nested = item.get("params")
    if isinstance(nested, Mapping):
        params.update(nested)
    params.update({k: v for k, v in item.items() if k not in ("type", "effectType", "params")})
    return EffectSpec(type=name, params=params)
