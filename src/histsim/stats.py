"""Per-channel color statistics extraction."""

from __future__ import annotations

import logging
import math
from typing import Any

import cv2
import numpy as np
import numpy.typing as npt

from .models import HISTOGRAM_BINS, ChannelStatistics, ImageStatistics
from .pixels import PixelSource, as_pixel_grid

logger = logging.getLogger(__name__)

_INTENSITIES = np.arange(HISTOGRAM_BINS, dtype=np.int64)
_MAX_INTENSITY = HISTOGRAM_BINS - 1
_EXACT_FLOAT32_COUNT = 2 ** 24


def median_from_histogram(histogram: npt.ArrayLike, total_pixels: int) -> int:
    """Median intensity read off a histogram.

    Returns the smallest intensity whose cumulative count reaches
    ceil(total_pixels / 2), or 255 if no bin reaches it.

    Args:
        histogram: 256 bin counts.
        total_pixels: Number of pixels the histogram was built from.

    Returns:
        Median intensity in [0, 255].
    """
    threshold = (total_pixels + 1) // 2
    cumulative = np.cumsum(np.asarray(histogram, dtype=np.int64))
    reached = np.flatnonzero(cumulative >= threshold)
    if len(reached) == 0:
        return _MAX_INTENSITY
    return int(reached[0])


def channel_histogram(grid: npt.NDArray[np.uint8], channel: int) -> npt.NDArray[np.int64]:
    """Count the intensities of one channel of an RGB grid.

    OpenCV reads the uint8 grid in place. Rows are processed in blocks of at
    most 2^24 pixels, the largest count calcHist's float32 output holds
    exactly, and the block counts are summed in int64.

    Args:
        grid: C-contiguous uint8 array of shape (height, width, 3).
        channel: Channel index (0 = red, 1 = green, 2 = blue).

    Returns:
        int64 array of 256 bin counts.
    """
    height, width = grid.shape[:2]
    rows_per_block = max(1, _EXACT_FLOAT32_COUNT // width)
    hist = np.zeros(HISTOGRAM_BINS, dtype=np.int64)
    for start in range(0, height, rows_per_block):
        block = grid[start:start + rows_per_block]
        counts = cv2.calcHist([block], [channel], None, [HISTOGRAM_BINS], [0, HISTOGRAM_BINS])
        hist += counts.ravel().astype(np.int64)
    return hist


def channel_statistics(hist: npt.NDArray[np.int64]) -> ChannelStatistics:
    """Derive extremes, median, mean and standard deviation from a channel histogram.

    Sums are int64 dot products of the histogram with the intensities, so they
    stay exact for images well past 10^8 pixels.

    Args:
        hist: 256 int64 bin counts of a non-empty channel.

    Returns:
        ChannelStatistics for the channel.
    """
    total = int(hist.sum())

    present = np.flatnonzero(hist)
    lo = int(present[0])
    hi = int(present[-1])

    total_sum = int(np.dot(hist, _INTENSITIES))
    total_sq = int(np.dot(hist, _INTENSITIES * _INTENSITIES))

    mean = total_sum / total
    # Rounding can push the variance slightly below zero for flat channels
    variance = max(0.0, total_sq / total - mean * mean)

    return ChannelStatistics(
        histogram=tuple(hist.tolist()),
        min=lo,
        max=hi,
        median=median_from_histogram(hist, total),
        mean=mean,
        std_dev=math.sqrt(variance),
    )


def compute_statistics(pixels: Any, identifier: str = "") -> ImageStatistics:
    """Compute per-channel statistics for an RGB pixel grid.

    Args:
        pixels: (height, width, 3) RGB grid with integer values in [0, 255].
        identifier: Reference stored on the result.

    Returns:
        ImageStatistics for the grid.

    Raises:
        InvalidImageError: If the grid has zero area or is malformed.
    """
    grid = np.ascontiguousarray(as_pixel_grid(pixels))
    height, width = grid.shape[:2]
    red, green, blue = (channel_statistics(channel_histogram(grid, c)) for c in range(3))
    return ImageStatistics(
        identifier=identifier,
        width=width,
        height=height,
        red=red,
        green=green,
        blue=blue,
    )


def load_statistics(identifier: str, source: PixelSource) -> ImageStatistics:
    """Load an image through a pixel source and compute its statistics.

    Args:
        identifier: Image reference passed to the source.
        source: Pixel source used to decode the image.

    Returns:
        ImageStatistics for the image.

    Raises:
        DecodeError: If the source cannot decode the image.
        InvalidImageError: If the decoded grid has zero area.
    """
    pixels = source.load(identifier)
    stats = compute_statistics(pixels, identifier=identifier)
    logger.debug(f"Computed statistics for {identifier} ({stats.width}x{stats.height})")
    return stats
