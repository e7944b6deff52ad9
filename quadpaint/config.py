"""Defaults, slider mappings and run configuration for quadtree builds."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple


# ---------------------------------------------------------------------------
# Segmentation controls are exposed as powers of two
# ---------------------------------------------------------------------------
LEAF_POWER_MIN = 0
LEAF_POWER_MAX = 8          # 2**8 = 256 px
STDDEV_POWER_MIN = 0
STDDEV_POWER_MAX = 6        # 2**6 = 64

DEFAULT_LEAF_POWER = 0
DEFAULT_STDDEV_POWER = 3


# ---------------------------------------------------------------------------
# Size accounting
# ---------------------------------------------------------------------------
RGB_BYTES = 3
RECT_HEADER_BYTES = 16      # x, y, w, h as 4-byte ints

DEFAULT_ENCODE_FORMAT = "PNG"


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
OUTLINE_COLOR: Tuple[int, int, int] = (255, 0, 0)
EMPTY_FILL_COLOR: Tuple[int, int, int] = (255, 255, 255)

# Fallback image shown when nothing could be loaded
DEMO_SIZE = 64
DEMO_CELL = 8
DEMO_COLORS: Tuple[Tuple[int, int, int], Tuple[int, int, int]] = (
    (220, 220, 220),
    (40, 40, 40),
)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tga", ".tif", ".tiff", ".webp", ".gif"}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def leaf_size_from_power(power: int) -> int:
    """Map a leaf-power slider index (clamped to 0..8) to a leaf size in px."""
    return 1 << _clamp(power, LEAF_POWER_MIN, LEAF_POWER_MAX)


def stddev_from_power(power: int) -> float:
    """Map a stddev-power slider index (clamped to 0..6) to a threshold."""
    return float(1 << _clamp(power, STDDEV_POWER_MIN, STDDEV_POWER_MAX))


@dataclass
class RunConfig:
    """Runtime configuration derived from CLI arguments."""

    inputs: Sequence[Path]
    output_dir: Path
    min_leaf_size: int
    stddev_threshold: float
    fill: bool = True
    outlines: bool = False
    scale: int = 1
    metrics_path: Optional[Path] = None

    @property
    def wants_preview(self) -> bool:
        return self.outlines or not self.fill or self.scale > 1
