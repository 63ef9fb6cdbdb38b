from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import pytest
from PIL import Image, ImageOps

from imgchain.errors import EngineInvocationError
from imgchain.options import EffectSpec


def _save(im: Image.Image, path: Path) -> None:
    if path.suffix.lower() in (".jpg", ".jpeg") and im.mode not in ("RGB", "L"):
        im = im.convert("RGB")
    im.save(path)


class FakeEngine:
    """Pillow stand-in for ImageMagick that records every call.

    `fail_on` names an engine method that raises EngineInvocationError
    instead of writing its output.
    """

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[Tuple[str, Path, Path, Any]] = []

    async def _apply(self, name: str, input_path: Path, output_path: Path, options: Any, fn) -> str:
        self.calls.append((name, Path(input_path), Path(output_path), options))
        # yield so concurrent runs interleave
        await asyncio.sleep(0)
        if name == self.fail_on:
            # leave a partial file behind, the way a crashing convert would
            Path(output_path).write_bytes(b"partial")
            raise EngineInvocationError(f"{name} failed: boom", family=name)
        with Image.open(input_path) as im:
            im.load()
            out = fn(im)
        _save(out, Path(output_path))
        return f"fake {name} {Path(input_path).name} {Path(output_path).name}"

    async def resize(self, input_path, output_path, options):
        def fn(im):
            w = options.width or im.width
            h = options.height or im.height
            return im.resize((w, h))

        return await self._apply("resize", input_path, output_path, options, fn)

    async def crop(self, input_path, output_path, options):
        box = (options.x, options.y, options.x + options.width, options.y + options.height)
        return await self._apply("crop", input_path, output_path, options, lambda im: im.crop(box))

    async def shape_crop(self, input_path, output_path, options):
        size = (options.width, options.height)
        return await self._apply("shape_crop", input_path, output_path, options, lambda im: im.convert("RGBA").resize(size))

    async def rotate(self, input_path, output_path, options):
        return await self._apply("rotate", input_path, output_path, options, lambda im: im.rotate(-options.degrees, expand=True))

    async def convert(self, input_path, output_path, options):
        return await self._apply("convert", input_path, output_path, options, lambda im: im.copy())

    async def watermark(self, input_path, output_path, options):
        return await self._apply("watermark", input_path, output_path, options, lambda im: im.copy())

    async def adjust(self, input_path, output_path, options):
        return await self._apply("adjust", input_path, output_path, options, lambda im: im.copy())

    async def trim(self, input_path, output_path, options):
        return await self._apply("trim", input_path, output_path, options, lambda im: im.copy())

    async def extent(self, input_path, output_path, options):
        def fn(im):
            canvas = Image.new("RGB", (options.width, options.height), options.background_color)
            canvas.paste(im.convert("RGB"), (0, 0))
            return canvas

        return await self._apply("extent", input_path, output_path, options, fn)

    async def flip(self, input_path, output_path):
        return await self._apply("flip", input_path, output_path, None, ImageOps.flip)

    async def flop(self, input_path, output_path):
        return await self._apply("flop", input_path, output_path, None, ImageOps.mirror)

    async def transpose(self, input_path, output_path):
        return await self._apply("transpose", input_path, output_path, None, lambda im: im.transpose(Image.Transpose.TRANSPOSE))

    async def transverse(self, input_path, output_path):
        return await self._apply("transverse", input_path, output_path, None, lambda im: im.transpose(Image.Transpose.TRANSVERSE))

    async def apply_filter(self, input_path, output_path, options):
        return await self._apply("apply_filter", input_path, output_path, options, lambda im: im.copy())

    async def apply_effects(self, input_path, output_path, effects: Sequence[EffectSpec]):
        def fn(im):
            out = im
            for effect in effects:
                if effect.type == "grayscale":
                    out = ImageOps.grayscale(out)
                elif effect.type == "negate":
                    out = ImageOps.invert(out.convert("RGB"))
            return out

        return await self._apply("apply_effects", input_path, output_path, list(effects), fn)

    async def check_installation(self):
        return {"installed": True, "binary": "fake", "version": "0.0"}


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def uploads(tmp_path: Path) -> Path:
    d = tmp_path / "uploads"
    d.mkdir()
    return d


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    d = tmp_path / "output"
    d.mkdir()
    return d


@pytest.fixture
def seed(uploads: Path) -> Path:
    path = uploads / "photo.jpg"
    Image.new("RGB", (800, 600), (200, 120, 40)).save(path)
    return path
