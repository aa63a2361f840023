"""
Placement geometry for watermark tiles.

Raster canvases work in whole pixels with the origin at the top-left corner
and tiles that never start outside the canvas. Paged canvases work in PDF
points and start one stride before the page edge so the first row and column
are partially visible.
"""

from __future__ import annotations

import math
from typing import List, Tuple

from .models import Placement


def raster_placements(
    canvas: Tuple[int, int],
    tile: Tuple[int, int],
    placement: Placement,
    spacing: float,
) -> List[Tuple[int, int]]:
    """
    Top-left pixel offsets for every tile on a raster canvas.

    Tiled offsets step by ``tile * spacing`` from (0, 0) while inside the
    canvas; tiles hanging over the right or bottom edge are clipped by the
    compositor. Centered placement may be negative when the tile is larger
    than the canvas.
    """
    width, height = canvas
    tile_w, tile_h = tile
    if placement is Placement.CENTERED:
        return [((width - tile_w) // 2, (height - tile_h) // 2)]

    stride_x = max(1, math.floor(tile_w * spacing))
    stride_y = max(1, math.floor(tile_h * spacing))
    return [(x, y) for y in range(0, height, stride_y) for x in range(0, width, stride_x)]


def paged_placements(
    page: Tuple[float, float],
    size: Tuple[float, float],
    placement: Placement,
    spacing: float,
) -> List[Tuple[float, float]]:
    """
    Offsets in points for every logo copy on a page of ``page`` size.

    The tiled grid starts at ``-stride`` on both axes and continues while the
    offset is below the page dimension plus one stride.
    """
    page_w, page_h = page
    logo_w, logo_h = size
    if placement is Placement.CENTERED:
        return [((page_w - logo_w) / 2, (page_h - logo_h) / 2)]

    stride_x = logo_w * spacing
    stride_y = logo_h * spacing
    positions: List[Tuple[float, float]] = []
    y = -stride_y
    while y < page_h + stride_y:
        x = -stride_x
        while x < page_w + stride_x:
            positions.append((x, y))
            x += stride_x
        y += stride_y
    return positions
