"""Batch loading and caching of image statistics."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing

from tqdm import tqdm

from .exceptions import BatchLoadError, HistSimError, LoadCancelledError
from .models import BatchEntry, ImageStatistics
from .pixels import OpenCVPixelSource, PixelSource
from .stats import load_statistics

logger = logging.getLogger(__name__)

Outcome = ImageStatistics | HistSimError


class ImageCatalog:
    """Loads target images through a pixel source and caches their statistics.

    Images are decoded and scanned concurrently on a thread pool. Each unit of
    work owns its own accumulators; results are collected by input position.
    """

    def __init__(
        self,
        source: PixelSource | None = None,
        num_workers: int | None = None,
        skip_failed: bool = False,
        show_progress: bool = False,
    ):
        """Initialize catalog.

        Args:
            source: Pixel source used to decode images. Defaults to reading
                files with OpenCV.
            num_workers: Number of worker threads (None = auto-detect CPU count).
            skip_failed: If True, drop entries that fail to load instead of
                aborting the batch.
            show_progress: Show a tqdm progress bar while loading.
        """
        self.source = source if source is not None else OpenCVPixelSource()
        self.num_workers = num_workers if num_workers is not None else (os.cpu_count() or 1)
        self.skip_failed = skip_failed
        self.show_progress = show_progress
        self._cache: dict[str, ImageStatistics] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._cache

    @property
    def entries(self) -> list[ImageStatistics]:
        """Cached statistics in the order they were loaded."""
        return list(self._cache.values())

    def get(self, identifier: str) -> ImageStatistics | None:
        return self._cache.get(identifier)

    def clear(self) -> None:
        self._cache.clear()

    def _attempt(self, identifier: str, cancel_event: threading.Event | None) -> Outcome:
        """Load one entry, returning the error instead of raising it."""
        if cancel_event is not None and cancel_event.is_set():
            msg = f"Batch cancelled before loading {identifier}"
            raise LoadCancelledError(msg)
        try:
            return load_statistics(identifier, self.source)
        except LoadCancelledError:
            raise
        except HistSimError as e:
            return e

    def _outcomes(
        self, pending: list[str], cancel_event: threading.Event | None
    ) -> Iterator[tuple[str, Outcome]]:
        """Yield (identifier, outcome) pairs in input order."""
        if self.num_workers <= 1 or len(pending) <= 1:
            for identifier in pending:
                yield identifier, self._attempt(identifier, cancel_event)
            return

        with ThreadPoolExecutor(max_workers=min(self.num_workers, len(pending))) as executor:
            futures = [executor.submit(self._attempt, i, cancel_event) for i in pending]
            try:
                for identifier, future in zip(pending, futures, strict=True):
                    yield identifier, future.result()
            finally:
                # Stop queued work if the consumer bailed out early
                for future in futures:
                    future.cancel()

    def _load(
        self, identifiers: list[str], cancel_event: threading.Event | None, fail_fast: bool
    ) -> dict[str, HistSimError]:
        """Load every uncached identifier, returning the failures by identifier."""
        pending = list(dict.fromkeys(i for i in identifiers if i not in self._cache))
        if len(pending) < len(identifiers):
            logger.debug(f"{len(identifiers) - len(pending)} entries served from cache")

        failures: dict[str, HistSimError] = {}
        with closing(self._outcomes(pending, cancel_event)) as outcomes, tqdm(
            outcomes, total=len(pending), desc="Loading images", disable=not self.show_progress
        ) as progress:
            for identifier, outcome in progress:
                if isinstance(outcome, ImageStatistics):
                    self._cache[identifier] = outcome
                    continue
                if fail_fast:
                    position = identifiers.index(identifier)
                    raise BatchLoadError(identifier, position, str(outcome)) from outcome
                logger.warning(f"Skipping {identifier}: {outcome}")
                failures[identifier] = outcome
        return failures

    def load_batch(
        self, identifiers: Iterable[str], cancel_event: threading.Event | None = None
    ) -> list[ImageStatistics]:
        """Load statistics for a batch of images, preserving input order.

        Args:
            identifiers: Image references passed to the pixel source.
            cancel_event: If set, entries not yet started are abandoned.

        Returns:
            One ImageStatistics per identifier. With skip_failed, failed
            entries are omitted.

        Raises:
            BatchLoadError: If an entry fails and skip_failed is False. Names
                the first failing identifier.
            LoadCancelledError: If cancel_event was set before all entries
                started.
        """
        ids = [str(i) for i in identifiers]
        failures = self._load(ids, cancel_event, fail_fast=not self.skip_failed)
        if failures:
            logger.info(f"Loaded {len(ids) - len(failures)}/{len(ids)} images "
                        f"({len(failures)} skipped)")
        return [self._cache[i] for i in ids if i in self._cache]

    def load_entries(
        self, identifiers: Iterable[str], cancel_event: threading.Event | None = None
    ) -> list[BatchEntry]:
        """Load a batch and report every entry's outcome without aborting.

        Args:
            identifiers: Image references passed to the pixel source.
            cancel_event: If set, entries not yet started are abandoned.

        Returns:
            One BatchEntry per identifier, in input order.

        Raises:
            LoadCancelledError: If cancel_event was set before all entries
                started.
        """
        ids = [str(i) for i in identifiers]
        failures = self._load(ids, cancel_event, fail_fast=False)
        return [
            BatchEntry(identifier=i, error=str(failures[i]))
            if i in failures
            else BatchEntry(identifier=i, statistics=self._cache[i])
            for i in ids
        ]


def load_batch(
    identifiers: Iterable[str],
    source: PixelSource | None = None,
    num_workers: int | None = None,
    skip_failed: bool = False,
) -> list[ImageStatistics]:
    """Convenience wrapper around ImageCatalog.load_batch."""
    catalog = ImageCatalog(source=source, num_workers=num_workers, skip_failed=skip_failed)
    return catalog.load_batch(identifiers)
