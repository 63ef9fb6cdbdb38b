from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

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


@runtime_checkable
class TransformationEngine(Protocol):
    """Performs the pixel work for one pipeline step.

    Every method writes `output_path` from `input_path` and returns a
    human-readable description of what it ran. Each call is one awaited
    unit of work; implementations must not return before the output file
    is complete.
    """

    async def resize(self, input_path: Path, output_path: Path, options: ResizeOptions) -> str:
        ...

    async def crop(self, input_path: Path, output_path: Path, options: CropOptions) -> str:
        ...

    async def shape_crop(self, input_path: Path, output_path: Path, options: ShapeCropOptions) -> str:
        ...

    async def rotate(self, input_path: Path, output_path: Path, options: RotateOptions) -> str:
        ...

    async def convert(self, input_path: Path, output_path: Path, options: ConvertOptions) -> str:
        ...

    async def watermark(self, input_path: Path, output_path: Path, options: WatermarkOptions) -> str:
        ...

    async def adjust(self, input_path: Path, output_path: Path, options: AdjustOptions) -> str:
        ...

    async def trim(self, input_path: Path, output_path: Path, options: TrimOptions) -> str:
        ...

    async def extent(self, input_path: Path, output_path: Path, options: ExtentOptions) -> str:
        ...

    async def flip(self, input_path: Path, output_path: Path) -> str:
        ...

    async def flop(self, input_path: Path, output_path: Path) -> str:
        ...

    async def transpose(self, input_path: Path, output_path: Path) -> str:
        ...

    async def transverse(self, input_path: Path, output_path: Path) -> str:
        ...

    async def apply_filter(self, input_path: Path, output_path: Path, options: FilterOptions) -> str:
        ...

    async def apply_effects(self, input_path: Path, output_path: Path, effects: Sequence[EffectSpec]) -> str:
        ...
