"""
Flat-colour reconstruction of a quadtree and compression accounting.

``rasterize`` paints each leaf's rectangle with its colour into a fresh
``(height, width, 3)`` buffer.  The size helpers report how compact the tree
is: a closed-form estimate of raw leaf data, and the length of the
rasterized image after lossless encoding with Pillow.
"""

from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
from PIL import Image

from .config import DEFAULT_ENCODE_FORMAT, RECT_HEADER_BYTES, RGB_BYTES
from .engine import Node, QuadtreeResult
from .errors import InvalidGeometryError

logger = logging.getLogger(__name__)


def _blit(out: np.ndarray, node: Node) -> None:
    height, width = out.shape[:2]
    x0, y0 = max(0, node.x), max(0, node.y)
    x1, y1 = min(width, node.x + node.w), min(height, node.y + node.h)
    if x1 <= x0 or y1 <= y0:
        return
    out[y0:y1, x0:x1] = node.color


def _paint(node: Node, out: np.ndarray) -> None:
    if node.is_leaf:
        _blit(out, node)
        return
    for child in node.children:
        _paint(child, out)


def rasterize(root: Node, width: int, height: int) -> np.ndarray:
    """Render the tree into an RGB ``uint8`` buffer of ``height x width``.

    Leaves partially outside the buffer are clipped.
    """
    if width <= 0 or height <= 0:
        raise InvalidGeometryError(f"Cannot rasterize into a {width}x{height} buffer")
    out = np.zeros((height, width, 3), dtype=np.uint8)
    _paint(root, out)
    return out


def estimate_leaf_bytes(leaf_count: int, include_rects: bool = True) -> int:
    """Rough size of storing every leaf: RGB plus optional x/y/w/h header."""
    per_leaf = RGB_BYTES + (RECT_HEADER_BYTES if include_rects else 0)
    return int(leaf_count) * per_leaf


def encode_image(buffer: np.ndarray, fmt: str = DEFAULT_ENCODE_FORMAT) -> bytes:
    """Losslessly encode an RGB buffer in memory."""
    stream = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(buffer, dtype=np.uint8)).save(stream, format=fmt)
    return stream.getvalue()


def encoded_size(buffer: np.ndarray, fmt: str = DEFAULT_ENCODE_FORMAT) -> int:
    return len(encode_image(buffer, fmt))


def save_rasterized(root: Node, width: int, height: int, path: Union[str, Path]) -> int:
    """Write the flat-colour render to ``path`` and return its size on disk."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(rasterize(root, width, height)).save(path)
    size = path.stat().st_size
    logger.info("Saved quadtree render: %s (%d bytes)", path, size)
    return size


@dataclass
class CompressionReport:
    """Size figures for one build, all in bytes."""

    width: int
    height: int
    node_count: int
    leaf_count: int
    build_ms: float
    original_bytes: int
    raw_pixel_bytes: int
    leaf_bytes: int
    encoded_bytes: int

    @property
    def leaf_percent(self) -> float:
        return 100.0 * self.leaf_count / self.node_count if self.node_count else 0.0

    @property
    def leaf_ratio(self) -> float:
        """Raw RGB bytes per byte of leaf data (higher is better)."""
        return self.raw_pixel_bytes / self.leaf_bytes if self.leaf_bytes else 0.0

    @property
    def encoded_ratio(self) -> float:
        """Original file bytes per encoded render byte; 0 when unknown."""
        if not self.original_bytes or not self.encoded_bytes:
            return 0.0
        return self.original_bytes / self.encoded_bytes

    def as_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = asdict(self)
        data["leaf_percent"] = round(self.leaf_percent, 2)
        data["leaf_ratio"] = round(self.leaf_ratio, 4)
        data["encoded_ratio"] = round(self.encoded_ratio, 4)
        return data


def build_compression_report(
    result: QuadtreeResult,
    original_bytes: Optional[int] = None,
    rendered: Optional[np.ndarray] = None,
    fmt: str = DEFAULT_ENCODE_FORMAT,
) -> CompressionReport:
    """Collect node counts and size estimates for a finished build.

    ``rendered`` may be passed to avoid rasterizing twice.
    """
    if rendered is None:
        rendered = rasterize(result.root, result.width, result.height)
    stats = result.stats
    return CompressionReport(
        width=result.width,
        height=result.height,
        node_count=stats.node_count,
        leaf_count=stats.leaf_count,
        build_ms=stats.elapsed_ms,
        original_bytes=int(original_bytes or 0),
        raw_pixel_bytes=result.width * result.height * RGB_BYTES,
        leaf_bytes=estimate_leaf_bytes(stats.leaf_count),
        encoded_bytes=encoded_size(rendered, fmt),
    )
