"""Tests for pixel grid construction/loading and region statistics."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from quadpaint.errors import GridShapeError, ImageLoadError, InvalidGeometryError
from quadpaint.grid import PixelGrid, checkerboard_grid, load_pixel_grid
from quadpaint.statistics import mean_and_std, mean_color, variance_score


# ---------------------------------------------------------------------------
# Tests: PixelGrid
# ---------------------------------------------------------------------------


class TestPixelGrid:
    def test_dimensions_and_indexing(self):
        pixels = np.zeros((3, 5, 3), dtype=np.uint8)
        pixels[2, 4] = (10, 20, 30)
        grid = PixelGrid(pixels)
        assert grid.width == 5
        assert grid.height == 3
        assert grid.size == (5, 3)
        assert grid.pixel(2, 4) == (10, 20, 30)

    def test_is_read_only_copy(self):
        pixels = np.zeros((4, 4, 3), dtype=np.uint8)
        grid = PixelGrid(pixels)
        pixels[0, 0] = (255, 255, 255)
        assert grid.pixel(0, 0) == (0, 0, 0)
        assert not grid.pixels.flags.writeable
        with pytest.raises(ValueError):
            grid.pixels[0, 0] = (1, 1, 1)

    @pytest.mark.parametrize("shape", [(4, 4), (4, 4, 4), (4, 4, 1), (2, 2, 3, 1)])
    def test_rejects_bad_shapes(self, shape):
        with pytest.raises(GridShapeError):
            PixelGrid(np.zeros(shape, dtype=np.uint8))

    def test_rejects_empty(self):
        with pytest.raises(InvalidGeometryError):
            PixelGrid(np.zeros((0, 4, 3), dtype=np.uint8))

    def test_rejects_out_of_range_values(self):
        with pytest.raises(GridShapeError):
            PixelGrid(np.full((2, 2, 3), 300, dtype=np.int32))

    def test_rejects_float_data(self):
        with pytest.raises(GridShapeError):
            PixelGrid(np.zeros((2, 2, 3), dtype=np.float32))

    def test_accepts_wider_int_dtype(self):
        grid = PixelGrid(np.full((2, 2, 3), 200, dtype=np.int64))
        assert grid.pixels.dtype == np.uint8
        assert grid.pixel(1, 1) == (200, 200, 200)

    def test_from_rows(self):
        grid = PixelGrid.from_rows([[(1, 2, 3), (4, 5, 6)], [(7, 8, 9), (10, 11, 12)]])
        assert grid.size == (2, 2)
        assert grid.pixel(1, 0) == (7, 8, 9)

    def test_from_rows_rejects_ragged(self):
        with pytest.raises(GridShapeError):
            PixelGrid.from_rows([[(1, 2, 3), (4, 5, 6)], [(7, 8, 9)]])

    def test_from_rows_rejects_zero_width(self):
        with pytest.raises(InvalidGeometryError):
            PixelGrid.from_rows([[]])

    def test_from_buffer(self):
        data = bytes(range(2 * 3 * 3))
        grid = PixelGrid.from_buffer(data, width=3, height=2)
        assert grid.pixel(0, 1) == (3, 4, 5)
        assert grid.pixel(1, 0) == (9, 10, 11)

    def test_from_buffer_rejects_mismatch(self):
        with pytest.raises(GridShapeError):
            PixelGrid.from_buffer(bytes(17), width=3, height=2)
        with pytest.raises(InvalidGeometryError):
            PixelGrid.from_buffer(b"", width=0, height=2)

    def test_checkerboard(self):
        grid = checkerboard_grid(size=16, cell=4, colors=((1, 1, 1), (2, 2, 2)))
        assert grid.pixel(0, 0) == (1, 1, 1)
        assert grid.pixel(0, 4) == (2, 2, 2)
        assert grid.pixel(4, 4) == (1, 1, 1)
        assert grid.pixel(15, 15) == (1, 1, 1)


class TestLoadPixelGrid:
    def test_loads_rgba_as_rgb(self, tmp_path: Path):
        pixels = np.zeros((6, 8, 4), dtype=np.uint8)
        pixels[..., 0] = 50
        pixels[..., 3] = 255
        path = tmp_path / "sprite.png"
        Image.fromarray(pixels).save(path)

        grid = load_pixel_grid(path)
        assert grid.size == (8, 6)
        assert grid.pixel(0, 0) == (50, 0, 0)
        assert grid.source_path == path
        assert grid.source_bytes == path.stat().st_size

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_pixel_grid(tmp_path / "nope.png")

    def test_undecodable_file(self, tmp_path: Path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"definitely not an image")
        with pytest.raises(ImageLoadError):
            load_pixel_grid(path)


# ---------------------------------------------------------------------------
# Tests: region statistics
# ---------------------------------------------------------------------------


class TestRegionStatistics:
    def test_population_std(self):
        pixels = np.array([[[0, 100, 7], [10, 100, 7]]], dtype=np.uint8)
        grid = PixelGrid(pixels)
        stats = mean_and_std(grid, 0, 0, 2, 1)
        assert stats.mean == pytest.approx((5.0, 100.0, 7.0))
        assert stats.std == pytest.approx((5.0, 0.0, 0.0))
        assert stats.score == pytest.approx(5.0 / 3.0)
        assert variance_score(grid, 0, 0, 2, 1) == pytest.approx(5.0 / 3.0)

    def test_matches_numpy_population_std(self):
        rng = np.random.RandomState(3)
        pixels = rng.randint(0, 256, (20, 30, 3), dtype=np.uint8)
        grid = PixelGrid(pixels)
        stats = mean_and_std(grid, 5, 2, 17, 11)
        block = pixels[2:13, 5:22].reshape(-1, 3).astype(np.float64)
        assert stats.mean == pytest.approx(tuple(block.mean(axis=0)))
        assert stats.std == pytest.approx(tuple(block.std(axis=0)), abs=1e-6)

    def test_constant_region_has_zero_std(self):
        grid = PixelGrid(np.full((33, 47, 3), 173, dtype=np.uint8))
        stats = mean_and_std(grid, 0, 0, 47, 33)
        assert stats.std == (0.0, 0.0, 0.0)
        assert stats.score == 0.0

    def test_mean_color_truncates(self):
        pixels = np.array([[[0, 0, 0], [1, 3, 255]]], dtype=np.uint8)
        grid = PixelGrid(pixels)
        assert mean_color(grid, 0, 0, 2, 1) == (0, 1, 127)

    def test_mean_color_of_sub_rectangle(self):
        pixels = np.zeros((4, 4, 3), dtype=np.uint8)
        pixels[2:, 2:] = (200, 100, 50)
        grid = PixelGrid(pixels)
        assert mean_color(grid, 2, 2, 2, 2) == (200, 100, 50)
        assert mean_color(grid, 0, 0, 4, 4) == (50, 25, 12)

    def test_single_pixel(self):
        grid = PixelGrid(np.array([[[9, 8, 7]]], dtype=np.uint8))
        stats = mean_and_std(grid, 0, 0, 1, 1)
        assert stats.std == (0.0, 0.0, 0.0)
        assert mean_color(grid, 0, 0, 1, 1) == (9, 8, 7)
