"""
Compositing of sprite sheets into a single atlas image.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np

from spritesheet_generator import codec
from spritesheet_generator.codec import ImageFormat
from spritesheet_generator.errors import DecodeError, RenderError, SheetIOError
from spritesheet_generator.model import Node, Sheet

logger = logging.getLogger(__name__)

NODE_GEOMETRY_FIELDS = ("x", "y", "x_scale", "y_scale", "width", "height")


def empty_canvas(width: int, height: int) -> np.ndarray:
    """Fully transparent BGRA buffer."""
    return np.zeros((height, width, 4), dtype=np.uint8)


def nearest_indices(start: int, stop: int, origin: int, scaled: int, source: int) -> np.ndarray:
    """
    Source indices for destination pixels [start, stop) of a span that starts
    at origin and stretches `source` pixels over `scaled` pixels.

    Plain Python integers keep the arithmetic exact for any scale.
    """
    return np.array([(d - origin) * source // scaled for d in range(start, stop)],
                    dtype=np.intp)


def blit_scaled(canvas: np.ndarray, src: np.ndarray, x0: int, y0: int,
                scaled_w: int, scaled_h: int) -> None:
    """
    Overwrite canvas pixels with src stretched to scaled_w x scaled_h, placed
    with its row 0 at canvas row y0.

    Only the part that lands on the canvas is sampled, so the cost depends on
    the canvas size rather than on the scale. Pixels falling outside the
    canvas are dropped. No alpha blending: every sampled pixel, transparent
    or not, replaces the destination pixel.
    """
    canvas_h, canvas_w = canvas.shape[:2]
    src_h, src_w = src.shape[:2]

    dst_x1, dst_x2 = max(x0, 0), min(x0 + scaled_w, canvas_w)
    dst_y1, dst_y2 = max(y0, 0), min(y0 + scaled_h, canvas_h)
    if dst_x2 <= dst_x1 or dst_y2 <= dst_y1:
        return

    rows = nearest_indices(dst_y1, dst_y2, y0, scaled_h, src_h)
    cols = nearest_indices(dst_x1, dst_x2, x0, scaled_w, src_w)
    canvas[dst_y1:dst_y2, dst_x1:dst_x2] = src[rows[:, None], cols]


def _check_geometry(node: Node, index: int) -> None:
    for attr in NODE_GEOMETRY_FIELDS:
        value = getattr(node, attr)
        if not math.isfinite(value):
            raise RenderError(f"Node {index} ({node.name!r}) has non-finite {attr}: {value}",
                              index, node.name)
    if not node.width > 0 or not node.height > 0:
        raise RenderError(
            f"Node {index} ({node.name!r}) has invalid size {node.width}x{node.height}",
            index, node.name)
    scaled = (node.width * node.x_scale, node.height * node.y_scale)
    if not all(math.isfinite(v) for v in scaled):
        raise RenderError(f"Node {index} ({node.name!r}) scales to an unrepresentable size",
                          index, node.name)


def _node_pixels(node: Node, index: int) -> np.ndarray:
    _check_geometry(node, index)
    try:
        return node.pixels()
    except DecodeError as e:
        raise RenderError(f"Node {index} ({node.name!r}) could not be decoded: {e}",
                          index, node.name) from e


def render(sheet: Sheet) -> np.ndarray:
    """
    Rasterize all nodes of a sheet onto a transparent canvas.

    Node coordinates have a top-left origin with y pointing down, while the
    returned buffer has its origin at the bottom-left, so each node lands at
    row ``sheet.height - y - scaled_height``.

    Args:
        sheet: The sheet to render

    Returns:
        BGRA buffer of shape (sheet.height, sheet.width, 4), or a 1x1
        transparent buffer if the sheet has no area

    Raises:
        RenderError: If a node has a non-finite or non-positive geometry, or its
            pixels can't be decoded.
    """
    if sheet.width < 1 or sheet.height < 1:
        logger.debug("Sheet %r has no area, rendering placeholder", sheet.name)
        return empty_canvas(1, 1)

    canvas = empty_canvas(sheet.width, sheet.height)

    for i, node in enumerate(sheet.nodes):
        pixels = _node_pixels(node, i)

        scaled_w, scaled_h = node.scaled_size()
        if scaled_w < 1 or scaled_h < 1:
            logger.debug("Node %d (%r) has no scaled area, skipping", i, node.name)
            continue

        x0 = math.floor(node.x)
        y0 = sheet.height - math.floor(node.y) - scaled_h

        blit_scaled(canvas, pixels, x0, y0, scaled_w, scaled_h)

    logger.info("Rendered sheet %r (%dx%d) with %d node(s)",
                sheet.name, sheet.width, sheet.height, len(sheet.nodes))
    return canvas


def output_path(sheet: Sheet, output_dir: str | Path, fmt: ImageFormat) -> Path:
    return Path(output_dir) / f"{sheet.name}.{fmt.extension}"


def export(sheet: Sheet, output_dir: str | Path, fmt: ImageFormat = ImageFormat.PNG) -> Path:
    """
    Render a sheet and write it to ``<output_dir>/<sheet name>.<ext>``.

    Args:
        sheet: The sheet to render
        output_dir: Directory for the output image, created if missing
        fmt: Output image format

    Returns:
        Path of the written image

    Raises:
        RenderError: If rendering fails.
        SheetIOError: If the image can't be written.
    """
    atlas = render(sheet)
    height, width = atlas.shape[:2]
    data = codec.encode(atlas, width, height, fmt)

    path = output_path(sheet, output_dir, fmt)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise SheetIOError(f"Could not write {path}: {e}") from e

    logger.info("Exported sheet %r to %s", sheet.name, path)
    return path
