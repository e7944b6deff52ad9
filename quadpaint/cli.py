"""
Batch command line interface for quadtree image decomposition.

Each input image is decoded into a pixel grid, decomposed with the chosen
leaf size and deviation threshold, and written back out as a flat-colour
render.  A CSV summary of node counts and size estimates is collected for
the whole run.

Usage examples
--------------

Decompose every image in ``input/`` with 4px minimum leaves::

    python -m quadpaint.cli input --min-leaf-size 4 --output-dir output

Use slider-style powers and also save an outlined preview at 4x::

    python -m quadpaint.cli photo.png --leaf-power 2 --stddev-power 4 --outlines --scale 4

Run on the built-in checkerboard::

    python -m quadpaint.cli --demo
"""

from __future__ import annotations

import argparse
import csv
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import (
    DEFAULT_LEAF_POWER,
    DEFAULT_STDDEV_POWER,
    IMAGE_EXTENSIONS,
    RunConfig,
    leaf_size_from_power,
    stddev_from_power,
)
from .engine import SegmentationParameters, build_quadtree
from .errors import QuadtreeError
from .grid import PixelGrid, checkerboard_grid, load_pixel_grid
from .preview import save_preview
from .reconstructor import build_compression_report, rasterize, save_rasterized

logger = logging.getLogger("quadpaint")

METRIC_FIELDS = [
    "image",
    "width",
    "height",
    "min_leaf_size",
    "stddev_threshold",
    "nodes",
    "leaves",
    "leaf_percent",
    "build_ms",
    "original_bytes",
    "leaf_bytes",
    "png_bytes",
    "output_path",
    "preview_path",
]


def _setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _gather_images(sources: Sequence[Path], recursive: bool) -> List[Path]:
    """Collect candidate image files from the provided locations."""
    seen: set[Path] = set()
    images: List[Path] = []

    for source in sources:
        if source.is_dir():
            iterator: Iterable[Path]
            iterator = source.rglob("*") if recursive else source.iterdir()
            for candidate in iterator:
                if not candidate.is_file():
                    continue
                if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
                    continue
                resolved = candidate.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                images.append(resolved)
        elif source.is_file():
            if source.suffix.lower() not in IMAGE_EXTENSIONS:
                logger.warning("Skipping unsupported file: %s", source)
                continue
            resolved = source.resolve()
            if resolved not in seen:
                seen.add(resolved)
                images.append(resolved)
        else:
            logger.warning("Input path not found: %s", source)

    images.sort()
    return images


def _process_grid(name: str, stem: str, grid: PixelGrid, cfg: RunConfig) -> dict:
    """Build, render and measure one grid; returns its metrics row."""
    params = SegmentationParameters(cfg.min_leaf_size, cfg.stddev_threshold)
    result = build_quadtree(grid, params)

    rendered = rasterize(result.root, result.width, result.height)
    report = build_compression_report(result, original_bytes=grid.source_bytes, rendered=rendered)

    output_path = cfg.output_dir / f"{stem}_quadtree.png"
    save_rasterized(result.root, result.width, result.height, output_path)

    preview_path: Optional[Path] = None
    if cfg.wants_preview:
        preview_path = save_preview(
            result.root,
            result.width,
            result.height,
            cfg.output_dir / f"{stem}_preview.png",
            fill=cfg.fill,
            outlines=cfg.outlines,
            scale=cfg.scale,
        )

    logger.info(
        "[OK] %s: %d nodes, %d leaves (%.0f%%), leaf data %.2f KB, PNG %.2f KB",
        name,
        report.node_count,
        report.leaf_count,
        report.leaf_percent,
        report.leaf_bytes / 1024.0,
        report.encoded_bytes / 1024.0,
    )

    return {
        "image": name,
        "width": report.width,
        "height": report.height,
        "min_leaf_size": params.min_leaf_size,
        "stddev_threshold": params.stddev_threshold,
        "nodes": report.node_count,
        "leaves": report.leaf_count,
        "leaf_percent": round(report.leaf_percent, 2),
        "build_ms": round(report.build_ms, 3),
        "original_bytes": report.original_bytes,
        "leaf_bytes": report.leaf_bytes,
        "png_bytes": report.encoded_bytes,
        "output_path": str(output_path),
        "preview_path": str(preview_path) if preview_path else "",
    }


def _process_single_image(image_path: Path, cfg: RunConfig) -> Optional[dict]:
    try:
        grid = load_pixel_grid(image_path)
    except (FileNotFoundError, QuadtreeError) as exc:
        logger.error("Failed to load %s: %s", image_path.name, exc)
        return None
    logger.debug("Loaded %s", grid)
    try:
        return _process_grid(image_path.name, image_path.stem, grid, cfg)
    except (OSError, QuadtreeError) as exc:
        logger.error("Failed to process %s: %s", image_path.name, exc)
        return None


def _write_metrics_csv(metrics: List[dict], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=METRIC_FIELDS)
        writer.writeheader()
        writer.writerows(metrics)
    logger.info("Metrics written to %s", path)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Quadtree flat-colour image decomposition.")
    parser.add_argument(
        "inputs",
        nargs="*",
        type=Path,
        help="Image files or directories to process.",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory for rendered images (default: ./output).",
    )

    leaf = parser.add_mutually_exclusive_group()
    leaf.add_argument(
        "--leaf-power",
        type=int,
        help=f"Minimum leaf size as a power of two, 0..8 (default: {DEFAULT_LEAF_POWER}).",
    )
    leaf.add_argument(
        "--min-leaf-size",
        type=int,
        help="Minimum leaf size in pixels.",
    )

    stddev = parser.add_mutually_exclusive_group()
    stddev.add_argument(
        "--stddev-power",
        type=int,
        help=f"Deviation threshold as a power of two, 0..6 (default: {DEFAULT_STDDEV_POWER}).",
    )
    stddev.add_argument(
        "--threshold",
        type=float,
        help="Deviation threshold as a raw number.",
    )

    parser.add_argument(
        "--outlines",
        action="store_true",
        help="Also save a preview with red leaf outlines.",
    )
    parser.add_argument(
        "--no-fill",
        action="store_true",
        help="Leave leaves unfilled in the preview.",
    )
    parser.add_argument(
        "--scale",
        type=int,
        default=1,
        help="Nearest-neighbour magnification for the preview (default: 1).",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="When inputs include directories, walk them recursively.",
    )
    parser.add_argument(
        "--metrics-path",
        type=Path,
        help="Write a CSV summary to the provided path (defaults to <output>/metrics.csv).",
    )
    parser.add_argument(
        "--no-metrics",
        action="store_true",
        help="Do not emit the metrics CSV.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Process the built-in 64x64 checkerboard.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def _resolve_parameters(args: argparse.Namespace) -> SegmentationParameters:
    if args.min_leaf_size is not None:
        min_leaf_size = args.min_leaf_size
    else:
        min_leaf_size = leaf_size_from_power(
            DEFAULT_LEAF_POWER if args.leaf_power is None else args.leaf_power
        )
    if args.threshold is not None:
        threshold = args.threshold
    else:
        threshold = stddev_from_power(
            DEFAULT_STDDEV_POWER if args.stddev_power is None else args.stddev_power
        )
    return SegmentationParameters(min_leaf_size, threshold)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.debug)

    try:
        params = _resolve_parameters(args)
    except QuadtreeError as exc:
        logger.error("%s", exc)
        return 1
    if args.scale < 1:
        logger.error("--scale must be >= 1")
        return 1

    images = _gather_images(args.inputs, recursive=args.recursive)
    if not images and not args.demo:
        logger.error("No matching images found.")
        return 1

    output_dir = args.output_dir.resolve()
    output_dir.mkdir(parents=True, exist_ok=True)

    metrics_path: Optional[Path]
    if args.no_metrics:
        metrics_path = None
    else:
        metrics_path = args.metrics_path.resolve() if args.metrics_path else output_dir / "metrics.csv"

    cfg = RunConfig(
        inputs=images,
        output_dir=output_dir,
        min_leaf_size=params.min_leaf_size,
        stddev_threshold=params.stddev_threshold,
        fill=not args.no_fill,
        outlines=args.outlines,
        scale=args.scale,
        metrics_path=metrics_path,
    )

    records: List[dict] = []
    if args.demo:
        records.append(_process_grid("checkerboard", "checkerboard", checkerboard_grid(), cfg))

    logger.info("Found %d image(s) to process -> %s", len(cfg.inputs), output_dir)
    for image_path in cfg.inputs:
        record = _process_single_image(image_path, cfg)
        if record is not None:
            records.append(record)

    if records and cfg.metrics_path:
        _write_metrics_csv(records, cfg.metrics_path)

    return 0 if records else 1


if __name__ == "__main__":
    raise SystemExit(main())
