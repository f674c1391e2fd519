"""histsim - Per-channel color statistics and histogram similarity ranking."""

from .catalog import ImageCatalog, load_batch
from .config import Config
from .exceptions import (
    BatchLoadError,
    DecodeError,
    HistSimError,
    InvalidArgumentError,
    InvalidImageError,
    LoadCancelledError,
)
from .models import BatchEntry, ChannelStatistics, ImageStatistics, MatchResult
from .pixels import ArrayPixelSource, OpenCVPixelSource, PixelSource
from .ranking import SimilarityRanker, batch_distance, distance, find_top_matches
from .search import SimilaritySearch
from .stats import compute_statistics, load_statistics, median_from_histogram

__version__ = "0.1.0"

__all__ = [
    "ArrayPixelSource",
    "BatchEntry",
    "BatchLoadError",
    "ChannelStatistics",
    "Config",
    "DecodeError",
    "HistSimError",
    "ImageCatalog",
    "ImageStatistics",
    "InvalidArgumentError",
    "InvalidImageError",
    "LoadCancelledError",
    "MatchResult",
    "OpenCVPixelSource",
    "PixelSource",
    "SimilarityRanker",
    "SimilaritySearch",
    "batch_distance",
    "compute_statistics",
    "distance",
    "find_top_matches",
    "load_batch",
    "load_statistics",
    "median_from_histogram",
]
