"""Public interface for the quadpaint quadtree decomposition toolkit."""

from __future__ import annotations

from .engine import (
    BuildStatistics,
    Node,
    QuadtreeResult,
    QuadtreeSession,
    SegmentationParameters,
    build_quadtree,
    decompose,
    iter_leaves,
    iter_nodes,
    max_depth,
)
from .errors import (
    GridShapeError,
    ImageLoadError,
    InvalidGeometryError,
    InvalidParametersError,
    QuadtreeError,
    RebuildInProgressError,
)
from .grid import PixelGrid, checkerboard_grid, load_pixel_grid
from .preview import render_preview, save_preview
from .reconstructor import (
    CompressionReport,
    build_compression_report,
    encoded_size,
    estimate_leaf_bytes,
    rasterize,
    save_rasterized,
)
from .statistics import RegionStats, mean_and_std, mean_color, variance_score

__all__ = [
    "BuildStatistics",
    "CompressionReport",
    "GridShapeError",
    "ImageLoadError",
    "InvalidGeometryError",
    "InvalidParametersError",
    "Node",
    "PixelGrid",
    "QuadtreeError",
    "QuadtreeResult",
    "QuadtreeSession",
    "RebuildInProgressError",
    "RegionStats",
    "SegmentationParameters",
    "build_compression_report",
    "build_quadtree",
    "checkerboard_grid",
    "decompose",
    "encoded_size",
    "estimate_leaf_bytes",
    "iter_leaves",
    "iter_nodes",
    "load_pixel_grid",
    "max_depth",
    "mean_and_std",
    "mean_color",
    "rasterize",
    "render_preview",
    "save_preview",
    "save_rasterized",
    "variance_score",
]
