"""Pydantic models for image statistics and match results."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, ConfigDict, Field, model_validator

HISTOGRAM_BINS = 256


class ChannelStatistics(BaseModel):
    """Statistics of a single color channel.

    Attributes:
        histogram: Pixel counts per intensity (256 bins, index = intensity).
        min: Smallest intensity present.
        max: Largest intensity present.
        median: First intensity whose cumulative count reaches half the pixels.
        mean: Mean intensity.
        std_dev: Population standard deviation of the intensities.
    """
    model_config = ConfigDict(frozen=True)

    histogram: tuple[int, ...] = Field(min_length=HISTOGRAM_BINS, max_length=HISTOGRAM_BINS)
    min: int = Field(ge=0, le=255)
    max: int = Field(ge=0, le=255)
    median: int = Field(ge=0, le=255)
    mean: float = Field(ge=0.0)
    std_dev: float = Field(ge=0.0)

    @model_validator(mode="after")
    def _check_invariants(self) -> ChannelStatistics:
        if any(count < 0 for count in self.histogram):
            msg = "histogram counts must be non-negative"
            raise ValueError(msg)
        if not self.min <= self.median <= self.max:
            msg = f"expected min <= median <= max, got {self.min}, {self.median}, {self.max}"
            raise ValueError(msg)
        return self

    @property
    def pixel_count(self) -> int:
        """Total number of pixels counted in the histogram."""
        return sum(self.histogram)


class ImageStatistics(BaseModel):
    """Per-channel statistics of one image.

    Attributes:
        identifier: Reference to the image (usually a file path).
        width: Image width in pixels.
        height: Image height in pixels.
        red: Red channel statistics.
        green: Green channel statistics.
        blue: Blue channel statistics.
    """
    model_config = ConfigDict(frozen=True)

    identifier: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    red: ChannelStatistics
    green: ChannelStatistics
    blue: ChannelStatistics

    @model_validator(mode="after")
    def _check_pixel_counts(self) -> ImageStatistics:
        expected = self.width * self.height
        for name, channel in zip(("red", "green", "blue"), self.channels, strict=True):
            if channel.pixel_count != expected:
                msg = (f"{name} histogram holds {channel.pixel_count} pixels, "
                       f"expected {expected}")
                raise ValueError(msg)
        return self

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def channels(self) -> tuple[ChannelStatistics, ChannelStatistics, ChannelStatistics]:
        """Channel statistics in (red, green, blue) order."""
        return (self.red, self.green, self.blue)

    def histogram_matrix(self) -> npt.NDArray[np.int64]:
        """Stack the channel histograms into a (3, 256) int64 array."""
        return np.array([channel.histogram for channel in self.channels], dtype=np.int64)


class MatchResult(BaseModel):
    """Single catalog image ranked against a query.

    Attributes:
        identifier: Reference to the matched image.
        score: Mean per-channel histogram angle in degrees (lower is more similar).
    """
    model_config = ConfigDict(frozen=True)

    identifier: str
    score: float = Field(ge=0.0, le=180.0)


class BatchEntry(BaseModel):
    """Outcome of loading one entry of a batch.

    Attributes:
        identifier: Reference to the image.
        statistics: Computed statistics, or None if loading failed.
        error: Error message if loading failed.
    """
    model_config = ConfigDict(frozen=True)

    identifier: str
    statistics: ImageStatistics | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.statistics is not None
