"""Inspection views of a quadtree: flat fill and red leaf outlines."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image

from .config import EMPTY_FILL_COLOR, OUTLINE_COLOR
from .engine import Node, iter_leaves
from .errors import InvalidGeometryError
from .reconstructor import rasterize

logger = logging.getLogger(__name__)


def draw_leaf_outlines(
    canvas: np.ndarray,
    root: Node,
    scale: int = 1,
    color: Tuple[int, int, int] = OUTLINE_COLOR,
) -> np.ndarray:
    """Draw a 1px rectangle around every leaf, in place.

    ``scale`` maps tree coordinates onto a canvas magnified by that factor.
    """
    out_h, out_w = canvas.shape[:2]
    for leaf in iter_leaves(root):
        x0 = leaf.x * scale
        y0 = leaf.y * scale
        x1 = min((leaf.x + leaf.w) * scale, out_w) - 1
        y1 = min((leaf.y + leaf.h) * scale, out_h) - 1
        if x1 < x0 or y1 < y0:
            continue
        cv2.rectangle(canvas, (x0, y0), (x1, y1), color, 1)
    return canvas


def render_preview(
    root: Node,
    width: int,
    height: int,
    fill: bool = True,
    outlines: bool = True,
    scale: int = 1,
    outline_color: Tuple[int, int, int] = OUTLINE_COLOR,
) -> np.ndarray:
    """Render the tree for inspection.

    Args:
        root: Tree root covering ``width x height``.
        fill: Paint each leaf with its colour; otherwise start from white.
        outlines: Overlay red leaf borders.
        scale: Nearest-neighbour magnification applied before outlines.

    Returns:
        RGB numpy array of shape ``(height * scale, width * scale, 3)``.
    """
    if scale < 1:
        raise InvalidGeometryError(f"Preview scale must be >= 1; got {scale}")

    if fill:
        canvas = rasterize(root, width, height)
    else:
        canvas = np.empty((height, width, 3), dtype=np.uint8)
        canvas[:] = EMPTY_FILL_COLOR

    if scale > 1:
        canvas = cv2.resize(canvas, (width * scale, height * scale), interpolation=cv2.INTER_NEAREST)
    canvas = np.ascontiguousarray(canvas)

    if outlines:
        draw_leaf_outlines(canvas, root, scale=scale, color=outline_color)
    return canvas


def save_preview(
    root: Node,
    width: int,
    height: int,
    output_path: Union[str, Path],
    fill: bool = True,
    outlines: bool = True,
    scale: int = 1,
) -> Path:
    """Render and save a preview image.

    Returns the output path.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    view = render_preview(root, width, height, fill=fill, outlines=outlines, scale=scale)
    Image.fromarray(view).save(output_path)
    logger.info("Preview saved: %s", output_path)
    return output_path
