"""Per-channel region statistics driving the split decision."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .grid import Color, PixelGrid


@dataclass(frozen=True)
class RegionStats:
    """Mean and population standard deviation of R, G, B over a rectangle."""

    mean_r: float
    mean_g: float
    mean_b: float
    std_r: float
    std_g: float
    std_b: float

    @property
    def mean(self) -> Tuple[float, float, float]:
        return self.mean_r, self.mean_g, self.mean_b

    @property
    def std(self) -> Tuple[float, float, float]:
        return self.std_r, self.std_g, self.std_b

    @property
    def score(self) -> float:
        """Unweighted mean of the three channel deviations."""
        return (self.std_r + self.std_g + self.std_b) / 3.0


def _channels(grid: PixelGrid, x: int, y: int, w: int, h: int) -> np.ndarray:
    return grid.region(x, y, w, h).reshape(-1, 3)


def mean_and_std(grid: PixelGrid, x: int, y: int, w: int, h: int) -> RegionStats:
    """Compute per-channel mean and population std over ``(x, y, w, h)``.

    Uses running sums: ``mean = sum(v) / n`` and
    ``std = sqrt(max(0, sum(v*v) / n - mean**2))``.  The clamp absorbs
    negative round-off when the variance is at or near zero.
    """
    values = _channels(grid, x, y, w, h).astype(np.float64)
    count = values.shape[0]
    sums = values.sum(axis=0)
    squares = (values * values).sum(axis=0)

    means = sums / count
    variances = np.maximum(0.0, squares / count - means * means)
    stds = np.sqrt(variances)

    return RegionStats(
        mean_r=float(means[0]),
        mean_g=float(means[1]),
        mean_b=float(means[2]),
        std_r=float(stds[0]),
        std_g=float(stds[1]),
        std_b=float(stds[2]),
    )


def variance_score(grid: PixelGrid, x: int, y: int, w: int, h: int) -> float:
    return mean_and_std(grid, x, y, w, h).score


def mean_color(grid: PixelGrid, x: int, y: int, w: int, h: int) -> Color:
    """Integer mean colour of the rectangle, truncated toward zero."""
    values = _channels(grid, x, y, w, h)
    count = values.shape[0]
    sums = values.sum(axis=0, dtype=np.uint64)
    r, g, b = (int(total) // count for total in sums)
    return r, g, b
