from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

from PIL import Image, UnidentifiedImageError

from ..errors import EngineInvocationError


def describe_image(path: Union[str, Path]) -> Dict[str, Any]:
    """Basic metadata for the /api/info endpoint."""
    p = Path(path)
    try:
        with Image.open(p) as im:
            return {
                "filename": p.name,
                "format": im.format,
                "width": im.width,
                "height": im.height,
                "mode": im.mode,
                "hasAlpha": "A" in im.getbands() or "transparency" in im.info,
                "frames": getattr(im, "n_frames", 1),
                "size": p.stat().st_size,
            }
    except UnidentifiedImageError as exc:
        raise EngineInvocationError(f"Cannot identify image: {p.name}") from exc
