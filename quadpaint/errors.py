"""Exception types raised by the quadtree core."""

from __future__ import annotations


class QuadtreeError(ValueError):
    """Base class for rejected input to the quadtree core."""


class InvalidGeometryError(QuadtreeError):
    """A region has zero area or lies outside the pixel grid."""


class GridShapeError(QuadtreeError):
    """Declared grid dimensions do not match the pixel data."""


class InvalidParametersError(QuadtreeError):
    """Segmentation parameters are out of range."""


class ImageLoadError(QuadtreeError):
    """An image file could not be decoded."""


class RebuildInProgressError(QuadtreeError):
    """A rebuild was requested while another one is still running."""
