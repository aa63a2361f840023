"""
Raster watermark engine.

Decodes a PNG or JPEG, builds a watermark layer the size of the canvas by
placing opacity-faded logo tiles on it, alpha-composites that layer over the
source and re-encodes the result as PNG.
"""

from __future__ import annotations

import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .errors import UnsupportedMediaTypeError
from .layout import raster_placements
from .logo import fade
from .models import WatermarkSpec

logger = logging.getLogger(__name__)

RASTER_FORMATS = {"PNG", "JPEG"}


def _decode(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise UnsupportedMediaTypeError(f"Could not decode image: {exc}") from exc
    if image.format not in RASTER_FORMATS:
        raise UnsupportedMediaTypeError(f"Unsupported image format: {image.format}")
    return image


def tile_size(canvas: Tuple[int, int], logo: Image.Image, spec: WatermarkSpec) -> Tuple[int, int]:
    """Tile dimensions for ``canvas``: absolute ``logo_width`` or ``scale`` of the shorter side."""
    if spec.logo_width:
        target_w = spec.logo_width
    else:
        target_w = max(1, int(min(canvas) * spec.scale))
    target_h = max(1, round(logo.height * target_w / logo.width))
    return target_w, target_h


def _paste(layer: Image.Image, tile: Image.Image, x: int, y: int) -> None:
    # alpha_composite rejects negative offsets, so trim the tile instead
    left, top = max(0, -x), max(0, -y)
    if left or top:
        if left >= tile.width or top >= tile.height:
            return
        tile = tile.crop((left, top, tile.width, tile.height))
    layer.alpha_composite(tile, dest=(max(0, x), max(0, y)))


def apply_raster(image: bytes, logo: Image.Image, spec: WatermarkSpec) -> bytes:
    """
    Watermark a raster image and return PNG bytes of the same pixel size.

    Raises:
        UnsupportedMediaTypeError: If ``image`` is not a decodable PNG or JPEG
    """
    source = _decode(image)
    has_alpha = "A" in source.getbands() or "transparency" in source.info
    canvas = source.convert("RGBA")

    size = tile_size(canvas.size, logo, spec)
    tile = fade(logo.resize(size, Image.Resampling.LANCZOS), spec.opacity)

    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    placements = raster_placements(canvas.size, tile.size, spec.placement, spec.spacing)
    for x, y in placements:
        _paste(layer, tile, x, y)

    result = Image.alpha_composite(canvas, layer)
    if not has_alpha:
        result = result.convert("RGB")

    logger.debug(f"Composited {len(placements)} tile(s) of {size} onto {canvas.size} image")
    buffer = io.BytesIO()
    result.save(buffer, format="PNG")
    return buffer.getvalue()
