"""End-to-end query pipeline: discover target images, build a catalog, rank."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .catalog import ImageCatalog
from .config import Config
from .models import ImageStatistics, MatchResult
from .pixels import OpenCVPixelSource, PixelSource
from .ranking import SimilarityRanker

logger = logging.getLogger(__name__)


class SimilaritySearch:
    """Main class for ranking target images by color similarity to a query."""

    def __init__(self, cfg: Config | None = None, source: PixelSource | None = None):
        """Initialize search pipeline.

        Args:
            cfg: Configuration object (defaults used if None).
            source: Pixel source shared by catalog and ranker.

        Raises:
            InvalidArgumentError: If the configuration is invalid.
        """
        self.cfg = cfg if cfg is not None else Config()
        self.cfg.validate()
        self.source = source if source is not None else OpenCVPixelSource()

        self.catalog = ImageCatalog(
            source=self.source,
            num_workers=self.cfg.num_workers,
            skip_failed=self.cfg.skip_failed,
            show_progress=self.cfg.show_progress,
        )
        self.ranker = SimilarityRanker(
            source=self.source,
            num_workers=self.cfg.num_workers,
            chunk_size=self.cfg.chunk_size,
        )
        self.targets: list[ImageStatistics] = []

    def discover_images(self, folder: Path) -> list[Path]:
        """Get all image files from a folder.

        Args:
            folder: Directory to scan (non-recursive).

        Returns:
            Sorted list of image file paths whose suffix is in cfg.extensions.
        """
        extensions = {ext.lower() for ext in self.cfg.extensions}
        return sorted(
            p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in extensions
        )

    def expand_targets(self, targets: Iterable[str | Path]) -> list[str]:
        """Expand directories into their image files, keeping files as given.

        Args:
            targets: Image files and/or directories.

        Returns:
            Image identifiers in the given order, directory contents sorted.
        """
        identifiers: list[str] = []
        for target in targets:
            path = Path(target)
            if path.is_dir():
                found = self.discover_images(path)
                logger.info(f"Found {len(found)} images in {path}")
                identifiers.extend(str(p) for p in found)
            else:
                identifiers.append(str(path))
        return identifiers

    def build_catalog(self, targets: Iterable[str | Path]) -> list[ImageStatistics]:
        """Load statistics for every target image.

        Args:
            targets: Image files and/or directories.

        Returns:
            Target statistics in target order.

        Raises:
            BatchLoadError: If a target fails to load and skip_failed is off.
        """
        identifiers = self.expand_targets(targets)
        logger.info(f"Loading {len(identifiers)} target images "
                    f"(workers: {self.catalog.num_workers})")
        self.targets = self.catalog.load_batch(identifiers)
        logger.info(f"Catalog ready: {len(self.targets)} images")
        return self.targets

    def query(self, query: str | Path, k: int | None = None) -> list[MatchResult]:
        """Rank the loaded catalog against a query image.

        Args:
            query: Query image identifier.
            k: Number of matches (defaults to cfg.top_k).

        Returns:
            Top matches, most similar first.
        """
        k = k if k is not None else self.cfg.top_k
        logger.info(f"Matching {query} against {len(self.targets)} images (top {k})")
        return self.ranker.find_top_matches(str(query), self.targets, k)
