"""Histogram cosine-angle distance and top-K ranking."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import numpy.typing as npt

from .exceptions import InvalidArgumentError
from .models import ImageStatistics, MatchResult
from .pixels import OpenCVPixelSource, PixelSource
from .stats import load_statistics

logger = logging.getLogger(__name__)


def normalized_histograms(stats: Sequence[ImageStatistics]) -> npt.NDArray[np.float64]:
    """Turn each image's channel histograms into probability distributions.

    Args:
        stats: Images to normalize.

    Returns:
        Array of shape (N, 3, 256) whose rows each sum to 1.
    """
    if len(stats) == 0:
        return np.empty((0, 3, 256), dtype=np.float64)
    hists = np.stack([s.histogram_matrix() for s in stats]).astype(np.float64)
    totals = np.array([s.pixel_count for s in stats], dtype=np.float64)
    return hists / totals[:, None, None]


def channel_angles(
    query_probs: npt.NDArray[np.float64], target_probs: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Angle in degrees between query and target histograms, per channel.

    Cosine similarity is taken as 0 when either vector has zero norm and is
    clamped to [0, 1] before the arccos.

    Args:
        query_probs: Normalized query histograms (3, 256).
        target_probs: Normalized target histograms (N, 3, 256).

    Returns:
        Array of shape (N, 3) with angles in [0, 90].
    """
    dot = (target_probs * query_probs).sum(axis=-1)
    query_sq = (query_probs * query_probs).sum(axis=-1)
    target_sq = (target_probs * target_probs).sum(axis=-1)

    # sqrt(a * b) so identical histograms give cos == 1.0 exactly
    denom = np.sqrt(query_sq * target_sq)
    cos = np.divide(dot, denom, out=np.zeros_like(dot), where=denom > 0)
    cos = np.clip(cos, 0.0, 1.0)
    return np.degrees(np.arccos(cos))


def batch_distance(
    query: ImageStatistics,
    catalog: Sequence[ImageStatistics],
    chunk_size: int = 1024,
    num_workers: int | None = 1,
) -> npt.NDArray[np.float64]:
    """Distance from one query to every catalog entry.

    The catalog is processed in chunks; with more than one worker, chunks are
    computed concurrently on a thread pool.

    Args:
        query: Query image statistics.
        catalog: Target image statistics.
        chunk_size: Number of catalog entries per chunk.
        num_workers: Worker threads (None = CPU count).

    Returns:
        Array of N distances in degrees, in catalog order.
    """
    if len(catalog) == 0:
        return np.empty(0, dtype=np.float64)

    query_probs = normalized_histograms([query])[0]

    def _chunk_distance(start: int) -> npt.NDArray[np.float64]:
        target_probs = normalized_histograms(catalog[start:start + chunk_size])
        return channel_angles(query_probs, target_probs).mean(axis=-1)

    starts = range(0, len(catalog), chunk_size)
    workers = num_workers if num_workers is not None else (os.cpu_count() or 1)

    if workers <= 1 or len(starts) == 1:
        parts = [_chunk_distance(start) for start in starts]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(starts))) as executor:
            parts = list(executor.map(_chunk_distance, starts))

    return np.concatenate(parts)


def distance(a: ImageStatistics, b: ImageStatistics) -> float:
    """Mean per-channel histogram angle between two images, in degrees.

    0 means identical normalized histograms on all channels, 90 means
    orthogonal distributions on all channels.

    Args:
        a: First image statistics.
        b: Second image statistics.

    Returns:
        Distance in [0, 180].
    """
    return float(batch_distance(a, [b])[0])


def _check_k(k: int) -> None:
    if k <= 0:
        msg = f"k must be positive, got {k}"
        raise InvalidArgumentError(msg)


class SimilarityRanker:
    """Rank catalog images by histogram similarity to a query image."""

    def __init__(
        self,
        source: PixelSource | None = None,
        num_workers: int | None = None,
        chunk_size: int = 1024,
    ):
        """Initialize ranker.

        Args:
            source: Pixel source used to decode query images. Defaults to
                reading files with OpenCV.
            num_workers: Worker threads for distance computation
                (None = auto-detect CPU count).
            chunk_size: Catalog entries per distance chunk.
        """
        self.source = source if source is not None else OpenCVPixelSource()
        self.num_workers = num_workers
        self.chunk_size = chunk_size

    def rank(
        self, query: ImageStatistics, catalog: Sequence[ImageStatistics], k: int
    ) -> list[MatchResult]:
        """Top-K catalog entries closest to already computed query statistics.

        Args:
            query: Query image statistics.
            catalog: Target image statistics.
            k: Maximum number of matches to return.

        Returns:
            min(k, len(catalog)) matches sorted by ascending score; ties keep
            catalog order.

        Raises:
            InvalidArgumentError: If k <= 0.
        """
        _check_k(k)
        distances = batch_distance(
            query, catalog, chunk_size=self.chunk_size, num_workers=self.num_workers
        )
        order = np.argsort(distances, kind="stable")[:k]
        logger.debug(f"Ranked {len(catalog)} catalog images against {query.identifier}")
        return [
            MatchResult(identifier=catalog[i].identifier, score=float(distances[i]))
            for i in order
        ]

    def find_top_matches(
        self, query: str, catalog: Sequence[ImageStatistics], k: int
    ) -> list[MatchResult]:
        """Decode a query image and return its top-K matches from the catalog.

        Args:
            query: Query image identifier.
            catalog: Target image statistics.
            k: Maximum number of matches to return.

        Returns:
            min(k, len(catalog)) matches sorted by ascending score.

        Raises:
            InvalidArgumentError: If k <= 0.
            DecodeError: If the query cannot be decoded.
            InvalidImageError: If the query has zero area.
        """
        _check_k(k)
        query_stats = load_statistics(query, self.source)
        return self.rank(query_stats, catalog, k)


def find_top_matches(
    query: str,
    catalog: Sequence[ImageStatistics],
    k: int,
    source: PixelSource | None = None,
) -> list[MatchResult]:
    """Convenience wrapper around SimilarityRanker.find_top_matches."""
    return SimilarityRanker(source=source).find_top_matches(query, catalog, k)
