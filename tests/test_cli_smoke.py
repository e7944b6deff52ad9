"""
Smoke tests for the batch CLI.

The goal is to exercise the full decomposition pipeline on a tiny synthetic
image so regressions in wiring or filesystem layout are caught early.
"""

from __future__ import annotations

import csv
from pathlib import Path

import numpy as np
from PIL import Image

from quadpaint.cli import main as cli_main


def _save_checkerboard(path: Path, size: int = 32, block: int = 4) -> None:
    """Create a simple RGBA checkerboard image for testing."""
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    colors = [
        (32, 48, 112, 255),
        (240, 200, 96, 255),
        (20, 20, 24, 255),
        (220, 80, 92, 255),
    ]
    for y in range(size):
        for x in range(size):
            idx = ((x // block) + (y // block)) % len(colors)
            pixels[y, x] = colors[idx]
    image = Image.fromarray(pixels)
    image.save(path)


def _read_rows(path: Path) -> list:
    with path.open(newline="") as handle:
        return list(csv.DictReader(handle))


def test_cli_smoke(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()

    source = input_dir / "sample.png"
    _save_checkerboard(source)

    exit_code = cli_main(
        [
            str(source),
            "--output-dir",
            str(output_dir),
            "--min-leaf-size",
            "4",
            "--threshold",
            "0",
            "--outlines",
        ]
    )
    assert exit_code == 0

    rendered = output_dir / "sample_quadtree.png"
    preview = output_dir / "sample_preview.png"
    metrics_path = output_dir / "metrics.csv"

    assert rendered.exists(), "CLI did not write the quadtree render"
    assert preview.exists(), "CLI did not write the outline preview"
    assert metrics_path.exists(), "CLI did not persist metrics CSV"

    rows = _read_rows(metrics_path)
    assert rows, "metrics.csv is empty"
    assert rows[0]["image"] == "sample.png"
    assert rows[0]["leaves"] == "64"
    assert rows[0]["nodes"] == "85"
    assert int(rows[0]["original_bytes"]) == source.stat().st_size
    assert rows[0]["output_path"].endswith("sample_quadtree.png")

    with Image.open(rendered) as img:
        assert img.size == (32, 32)
        assert img.getpixel((1, 1)) == (32, 48, 112)


def test_cli_directory_and_powers(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    _save_checkerboard(input_dir / "a.png")
    _save_checkerboard(input_dir / "b.png", block=8)
    (input_dir / "notes.txt").write_text("not an image")

    exit_code = cli_main(
        [str(input_dir), "-o", str(output_dir), "--leaf-power", "3", "--stddev-power", "0"]
    )
    assert exit_code == 0

    rows = _read_rows(output_dir / "metrics.csv")
    assert [row["image"] for row in rows] == ["a.png", "b.png"]
    assert all(row["min_leaf_size"] == "8" for row in rows)
    assert not (output_dir / "a_preview.png").exists()


def test_cli_demo_without_metrics(tmp_path):
    output_dir = tmp_path / "output"
    exit_code = cli_main(["--demo", "-o", str(output_dir), "--no-metrics"])
    assert exit_code == 0
    assert (output_dir / "checkerboard_quadtree.png").exists()
    assert not (output_dir / "metrics.csv").exists()


def test_cli_without_inputs_fails(tmp_path):
    assert cli_main([str(tmp_path / "missing.png"), "-o", str(tmp_path / "out")]) == 1


def test_cli_rejects_bad_parameters(tmp_path):
    assert cli_main(["--demo", "-o", str(tmp_path), "--min-leaf-size", "0"]) == 1


def test_cli_skips_undecodable_image(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"junk")
    assert cli_main([str(broken), "-o", str(tmp_path / "out")]) == 1


def test_cli_continues_after_failed_save(tmp_path):
    input_dir = tmp_path / "input"
    output_dir = tmp_path / "output"
    input_dir.mkdir()
    _save_checkerboard(input_dir / "a.png")
    _save_checkerboard(input_dir / "b.png")
    # A directory in the way makes saving a's render fail.
    (output_dir / "a_quadtree.png").mkdir(parents=True)

    exit_code = cli_main([str(input_dir), "-o", str(output_dir)])
    assert exit_code == 0
    assert (output_dir / "b_quadtree.png").is_file()

    rows = _read_rows(output_dir / "metrics.csv")
    assert [row["image"] for row in rows] == ["b.png"]


def test_cli_scale_alone_writes_magnified_preview(tmp_path):
    source = tmp_path / "sample.png"
    output_dir = tmp_path / "output"
    _save_checkerboard(source, size=16)

    assert cli_main([str(source), "-o", str(output_dir), "--scale", "2", "--no-metrics"]) == 0

    preview = output_dir / "sample_preview.png"
    assert preview.exists(), "--scale above 1 should save a preview"
    with Image.open(preview) as img:
        assert img.size == (32, 32)
    with Image.open(output_dir / "sample_quadtree.png") as img:
        assert img.size == (16, 16)
