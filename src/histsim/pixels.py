"""Pixel sources: turn an image identifier into an RGB pixel grid."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import cv2
import numpy as np
import numpy.typing as npt

from .exceptions import DecodeError, InvalidImageError

logger = logging.getLogger(__name__)

_GRID_DIMS = 3
_COLOR_CHANNELS = 3

PixelGrid = npt.NDArray[np.uint8]


class PixelSource(Protocol):
    """Protocol for anything that can materialize an RGB pixel grid."""

    def load(self, identifier: str) -> PixelGrid:
        """Load the pixels behind an identifier.

        Args:
            identifier: Image reference understood by the source.

        Returns:
            uint8 array of shape (height, width, 3) in RGB order.

        Raises:
            DecodeError: If no pixel grid can be produced.
        """
        ...


def as_pixel_grid(pixels: Any) -> PixelGrid:
    """Coerce an array-like RGB grid into a validated uint8 array.

    Args:
        pixels: numpy array or nested sequences shaped (height, width, 3).

    Returns:
        uint8 array of shape (height, width, 3).

    Raises:
        InvalidImageError: If the grid is empty, not 3-channel, or holds
            values outside [0, 255].
    """
    try:
        arr = np.asarray(pixels)
    except ValueError as e:
        msg = f"pixel grid rows have inconsistent lengths: {e}"
        raise InvalidImageError(msg) from e
    if arr.ndim != _GRID_DIMS or arr.shape[2] != _COLOR_CHANNELS:
        if arr.size == 0:
            msg = "pixel grid has zero width or height"
            raise InvalidImageError(msg)
        msg = f"expected a (height, width, 3) RGB grid, got shape {arr.shape}"
        raise InvalidImageError(msg)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        msg = f"pixel grid has zero width or height (shape {arr.shape})"
        raise InvalidImageError(msg)

    if arr.dtype == np.uint8:
        return arr
    if not np.issubdtype(arr.dtype, np.integer):
        msg = f"pixel values must be integers, got dtype {arr.dtype}"
        raise InvalidImageError(msg)
    if arr.min() < 0 or arr.max() > 255:  # noqa: PLR2004
        msg = "pixel values must lie in [0, 255]"
        raise InvalidImageError(msg)
    return arr.astype(np.uint8)


class OpenCVPixelSource:
    """Decode image files from disk with OpenCV."""

    def load(self, identifier: str) -> PixelGrid:
        """Read an image file and return its pixels in RGB order.

        Args:
            identifier: Path to an image file.

        Returns:
            uint8 array of shape (height, width, 3).

        Raises:
            DecodeError: If the file is missing or cannot be decoded.
        """
        path = Path(identifier)
        if not path.is_file():
            raise DecodeError(str(identifier), "file not found")

        img = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if img is None:
            raise DecodeError(str(identifier), "unsupported or corrupt image file")

        logger.debug(f"Decoded {identifier} ({img.shape[1]}x{img.shape[0]})")
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


class ArrayPixelSource:
    """Serve pixel grids held in memory, keyed by identifier."""

    def __init__(self, images: Mapping[str, Any]):
        """Initialize source with pre-materialized grids.

        Args:
            images: Mapping of identifier to (height, width, 3) RGB grid.
        """
        self.images = dict(images)

    def load(self, identifier: str) -> PixelGrid:
        if identifier not in self.images:
            raise DecodeError(identifier, "unknown identifier")
        return np.asarray(self.images[identifier])
