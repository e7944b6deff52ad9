"""
Read-only RGB pixel grid consumed by the quadtree engine.

The grid wraps a ``(height, width, 3)`` ``uint8`` numpy array.  It is
validated once at construction and then treated as immutable: the backing
array is copied and flagged non-writeable so nothing downstream can mutate
pixels mid-build.  Loading from disk goes through Pillow and always forces
RGB, dropping any alpha channel.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import DEMO_CELL, DEMO_COLORS, DEMO_SIZE
from .errors import GridShapeError, ImageLoadError, InvalidGeometryError

Color = Tuple[int, int, int]


class PixelGrid:
    """Immutable 2-D grid of RGB pixels, indexed ``(row, column)``."""

    __slots__ = ("_pixels", "source_path", "source_bytes")

    def __init__(
        self,
        pixels: np.ndarray,
        source_path: Optional[Path] = None,
        source_bytes: Optional[int] = None,
    ):
        arr = np.asarray(pixels)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise GridShapeError(
                f"Pixel data must have shape (height, width, 3); got {arr.shape}"
            )
        if arr.dtype != np.uint8:
            if not np.issubdtype(arr.dtype, np.integer):
                raise GridShapeError(f"Pixel data must be 8-bit integers; got {arr.dtype}")
            if arr.size and (arr.min() < 0 or arr.max() > 255):
                raise GridShapeError("Pixel values must lie in 0..255")
            arr = arr.astype(np.uint8)
        height, width = arr.shape[:2]
        if width <= 0 or height <= 0:
            raise InvalidGeometryError(f"Grid must be non-empty; got {width}x{height}")

        frozen = np.array(arr, dtype=np.uint8, copy=True, order="C")
        frozen.setflags(write=False)
        self._pixels = frozen
        self.source_path = source_path
        self.source_bytes = source_bytes

    # ------------------------------------------------------------------
    # constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Iterable[int]]]) -> "PixelGrid":
        """Build a grid from nested ``rows[row][col] = (r, g, b)`` sequences."""
        if not rows:
            raise InvalidGeometryError("Grid must contain at least one row")
        width = len(rows[0])
        if width == 0:
            raise InvalidGeometryError("Grid must contain at least one column")
        for index, row in enumerate(rows):
            if len(row) != width:
                raise GridShapeError(
                    f"Row {index} has {len(row)} pixels, expected {width}"
                )
        return cls(np.array([[tuple(px) for px in row] for row in rows], dtype=np.int64))

    @classmethod
    def from_buffer(cls, data: Union[bytes, bytearray, memoryview, np.ndarray], width: int, height: int) -> "PixelGrid":
        """Build a grid from a flat, row-major RGB byte buffer."""
        if width <= 0 or height <= 0:
            raise InvalidGeometryError(f"Grid must be non-empty; got {width}x{height}")
        flat = np.frombuffer(bytes(data), dtype=np.uint8) if not isinstance(data, np.ndarray) else data.reshape(-1)
        expected = width * height * 3
        if flat.size != expected:
            raise GridShapeError(
                f"Buffer holds {flat.size} bytes but {width}x{height} RGB needs {expected}"
            )
        return cls(flat.reshape(height, width, 3))

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def pixels(self) -> np.ndarray:
        """Read-only ``(height, width, 3)`` view of the pixel data."""
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def pixel(self, row: int, col: int) -> Color:
        r, g, b = self._pixels[row, col]
        return int(r), int(g), int(b)

    def region(self, x: int, y: int, w: int, h: int) -> np.ndarray:
        """Return the read-only ``(h, w, 3)`` slice for the rectangle."""
        return self._pixels[y:y + h, x:x + w]

    def contains(self, x: int, y: int, w: int, h: int) -> bool:
        return x >= 0 and y >= 0 and w >= 1 and h >= 1 and x + w <= self.width and y + h <= self.height

    def __repr__(self) -> str:
        origin = f", source={self.source_path.name!r}" if self.source_path else ""
        return f"PixelGrid({self.width}x{self.height}{origin})"


def load_pixel_grid(path: Union[str, Path]) -> PixelGrid:
    """Decode an image file into a :class:`PixelGrid` (forced to RGB).

    Raises:
        FileNotFoundError: if ``path`` does not point at a file.
        ImageLoadError: if Pillow cannot decode the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")

    try:
        with Image.open(path) as img:
            if img.mode != "RGB":
                img = img.convert("RGB")
            pixels = np.array(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"Could not decode image {path}: {exc}") from exc

    try:
        source_bytes: Optional[int] = path.stat().st_size
    except OSError:
        source_bytes = None

    return PixelGrid(pixels, source_path=path, source_bytes=source_bytes)


def checkerboard_grid(
    size: int = DEMO_SIZE,
    cell: int = DEMO_CELL,
    colors: Tuple[Color, Color] = DEMO_COLORS,
) -> PixelGrid:
    """Square two-colour checkerboard, used as a fallback image."""
    if size <= 0 or cell <= 0:
        raise InvalidGeometryError("Checkerboard size and cell must be positive")
    ys, xs = np.indices((size, size))
    mask = ((xs // cell + ys // cell) & 1) == 0
    pixels = np.empty((size, size, 3), dtype=np.uint8)
    pixels[mask] = colors[0]
    pixels[~mask] = colors[1]
    return PixelGrid(pixels)
