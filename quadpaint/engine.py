"""
Quadtree decomposition engine.

A region becomes a leaf when it is too small to split further or when the
mean of its per-channel standard deviations falls at or below the
threshold.  Otherwise it is cut at its integer midpoints into four
children (NW, NE, SW, SE) that tile it exactly; the east and south
children absorb the odd pixel when a side length is odd.
"""

from __future__ import annotations

import logging
import math
import numbers
import time
from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional, Tuple

from .config import (
    DEFAULT_LEAF_POWER,
    DEFAULT_STDDEV_POWER,
    leaf_size_from_power,
    stddev_from_power,
)
from .errors import (
    InvalidGeometryError,
    InvalidParametersError,
    QuadtreeError,
    RebuildInProgressError,
)
from .grid import Color, PixelGrid
from .statistics import mean_color, variance_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentationParameters:
    """Immutable controls for one build."""

    min_leaf_size: int
    stddev_threshold: float

    def __post_init__(self):
        size = self.min_leaf_size
        if isinstance(size, bool) or not isinstance(size, numbers.Real) or not float(size).is_integer():
            raise InvalidParametersError(f"min_leaf_size must be an integer; got {size!r}")
        if size < 1:
            raise InvalidParametersError(f"min_leaf_size must be >= 1; got {size}")
        if isinstance(self.stddev_threshold, bool) or not isinstance(self.stddev_threshold, numbers.Real):
            raise InvalidParametersError(
                f"stddev_threshold must be a number; got {self.stddev_threshold!r}"
            )
        threshold = float(self.stddev_threshold)
        if not math.isfinite(threshold) or threshold < 0:
            raise InvalidParametersError(
                f"stddev_threshold must be a finite non-negative number; got {self.stddev_threshold!r}"
            )
        object.__setattr__(self, "min_leaf_size", int(self.min_leaf_size))
        object.__setattr__(self, "stddev_threshold", threshold)

    @classmethod
    def from_powers(
        cls,
        leaf_power: int = DEFAULT_LEAF_POWER,
        stddev_power: int = DEFAULT_STDDEV_POWER,
    ) -> "SegmentationParameters":
        """Build parameters from slider-style power-of-two indices."""
        return cls(leaf_size_from_power(leaf_power), stddev_from_power(stddev_power))

    @classmethod
    def default(cls) -> "SegmentationParameters":
        return cls.from_powers()


@dataclass(frozen=True)
class Node:
    """One rectangle of the tree; a leaf when ``children`` is ``None``.

    Internal nodes hold their children in NW, NE, SW, SE order.
    """

    x: int
    y: int
    w: int
    h: int
    color: Optional[Color] = None
    children: Optional[Tuple["Node", "Node", "Node", "Node"]] = None

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.w, self.h

    @property
    def area(self) -> int:
        return self.w * self.h


@dataclass
class BuildStatistics:
    """Counters accumulated during one decomposition pass."""

    node_count: int = 0
    leaf_count: int = 0
    elapsed_ms: float = 0.0

    def reset(self) -> None:
        self.node_count = 0
        self.leaf_count = 0
        self.elapsed_ms = 0.0

    @property
    def leaf_percent(self) -> float:
        if not self.node_count:
            return 0.0
        return 100.0 * self.leaf_count / self.node_count


@dataclass
class QuadtreeResult:
    """Root of a finished build plus the statistics gathered while growing it."""

    root: Node
    width: int
    height: int
    params: SegmentationParameters
    stats: BuildStatistics = field(default_factory=BuildStatistics)


def _make_leaf(grid: PixelGrid, x: int, y: int, w: int, h: int, stats: BuildStatistics) -> Node:
    stats.leaf_count += 1
    return Node(x, y, w, h, color=mean_color(grid, x, y, w, h))


def _split(
    grid: PixelGrid,
    x: int,
    y: int,
    w: int,
    h: int,
    params: SegmentationParameters,
    stats: BuildStatistics,
) -> Node:
    stats.node_count += 1

    min_leaf = params.min_leaf_size
    if w <= min_leaf or h <= min_leaf or variance_score(grid, x, y, w, h) <= params.stddev_threshold:
        return _make_leaf(grid, x, y, w, h, stats)

    w2, h2 = w // 2, h // 2
    if w2 == 0 or h2 == 0:
        # too thin for four non-empty quadrants
        return _make_leaf(grid, x, y, w, h, stats)

    children = (
        _split(grid, x, y, w2, h2, params, stats),
        _split(grid, x + w2, y, w - w2, h2, params, stats),
        _split(grid, x, y + h2, w2, h - h2, params, stats),
        _split(grid, x + w2, y + h2, w - w2, h - h2, params, stats),
    )
    return Node(x, y, w, h, children=children)


def decompose(
    grid: PixelGrid,
    x: int,
    y: int,
    w: int,
    h: int,
    params: SegmentationParameters,
    stats: Optional[BuildStatistics] = None,
) -> Node:
    """Recursively partition ``(x, y, w, h)`` of ``grid`` into a quadtree.

    Children are visited depth-first in NW, NE, SW, SE order.  ``stats`` is
    updated in place (node and leaf counters only; timing is the caller's
    job, see :func:`build_quadtree`).

    Raises:
        InvalidGeometryError: if the rectangle is empty or leaves the grid.
    """
    if w < 1 or h < 1:
        raise InvalidGeometryError(f"Cannot decompose a zero-area region ({w}x{h})")
    if not grid.contains(x, y, w, h):
        raise InvalidGeometryError(
            f"Region ({x}, {y}, {w}, {h}) lies outside the {grid.width}x{grid.height} grid"
        )
    if stats is None:
        stats = BuildStatistics()
    return _split(grid, x, y, w, h, params, stats)


def build_quadtree(grid: PixelGrid, params: SegmentationParameters) -> QuadtreeResult:
    """Grow a fresh tree over the whole grid and time the build."""
    stats = BuildStatistics()
    started = time.perf_counter()
    root = decompose(grid, 0, 0, grid.width, grid.height, params, stats)
    stats.elapsed_ms = (time.perf_counter() - started) * 1000.0

    logger.info(
        "Built quadtree %dx%d (min_leaf=%d, stddev<=%.1f): %d nodes, %d leaves in %.3f ms",
        grid.width,
        grid.height,
        params.min_leaf_size,
        params.stddev_threshold,
        stats.node_count,
        stats.leaf_count,
        stats.elapsed_ms,
    )
    return QuadtreeResult(root=root, width=grid.width, height=grid.height, params=params, stats=stats)


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------


def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order walk (parent, then NW, NE, SW, SE)."""
    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        yield node
        if node.children is not None:
            stack.extend(reversed(node.children))


def iter_leaves(root: Node) -> Iterator[Node]:
    return (node for node in iter_nodes(root) if node.is_leaf)


def max_depth(root: Node) -> int:
    """Depth of the deepest leaf; a lone root has depth 0."""
    deepest = 0
    stack: List[Tuple[Node, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        deepest = max(deepest, depth)
        if node.children is not None:
            stack.extend((child, depth + 1) for child in node.children)
    return deepest


# ---------------------------------------------------------------------------
# Rebuild session
# ---------------------------------------------------------------------------


class QuadtreeSession:
    """Holds the current grid, parameters and tree; regrows on every change.

    There is no incremental update.  Loading a new grid or changing either
    parameter releases the old tree and grows a new one from scratch.
    """

    def __init__(
        self,
        grid: Optional[PixelGrid] = None,
        params: Optional[SegmentationParameters] = None,
    ):
        self._grid = grid
        self._params = params or SegmentationParameters.default()
        self._result: Optional[QuadtreeResult] = None
        self._building = False
        self.rebuild_count = 0
        if grid is not None:
            self.rebuild()

    @property
    def grid(self) -> Optional[PixelGrid]:
        return self._grid

    @property
    def params(self) -> SegmentationParameters:
        return self._params

    @property
    def result(self) -> Optional[QuadtreeResult]:
        return self._result

    @property
    def root(self) -> Optional[Node]:
        return self._result.root if self._result else None

    @property
    def stats(self) -> BuildStatistics:
        return self._result.stats if self._result else BuildStatistics()

    def load(self, grid: PixelGrid) -> QuadtreeResult:
        """Replace the grid wholesale and rebuild."""
        logger.debug("Loading new grid %s", grid)
        self._grid = grid
        return self.rebuild()

    def update(
        self,
        min_leaf_size: Optional[int] = None,
        stddev_threshold: Optional[float] = None,
    ) -> bool:
        """Apply new parameters; rebuilds and returns True only if one changed."""
        changes = {}
        if min_leaf_size is not None and min_leaf_size != self._params.min_leaf_size:
            changes["min_leaf_size"] = min_leaf_size
        if stddev_threshold is not None and float(stddev_threshold) != self._params.stddev_threshold:
            changes["stddev_threshold"] = stddev_threshold
        if not changes:
            return False

        self._params = replace(self._params, **changes)
        logger.debug("Parameters changed (%s); rebuilding", ", ".join(sorted(changes)))
        if self._grid is not None:
            self.rebuild()
        return True

    def rebuild(self) -> QuadtreeResult:
        if self._building:
            raise RebuildInProgressError("A rebuild is already in progress")
        if self._grid is None:
            raise QuadtreeError("No pixel grid loaded")

        self._building = True
        try:
            self._result = None
            self._result = build_quadtree(self._grid, self._params)
            self.rebuild_count += 1
        finally:
            self._building = False
        return self._result
