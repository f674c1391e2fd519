#!/usr/bin/env python3
"""Configuration dataclass for histsim."""

from __future__ import annotations

from dataclasses import dataclass, field

from .exceptions import InvalidArgumentError

DEFAULT_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp")


@dataclass
class Config:
    """Settings shared by catalog loading and ranking."""

    # Ranking
    top_k: int = 5

    # Parallelism (None = auto-detect CPU count, 1 = run inline)
    num_workers: int | None = None
    chunk_size: int = 1024  # catalog entries per distance chunk

    # Batch loading
    skip_failed: bool = False
    show_progress: bool = True

    # Folder discovery
    extensions: tuple[str, ...] = field(default=DEFAULT_EXTENSIONS)

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            InvalidArgumentError: If any parameter is invalid.
        """
        if self.top_k <= 0:
            msg = f"top_k must be positive, got {self.top_k}"
            raise InvalidArgumentError(msg)
        if self.num_workers is not None and self.num_workers < 1:
            msg = f"num_workers must be >= 1, got {self.num_workers}"
            raise InvalidArgumentError(msg)
        if self.chunk_size < 1:
            msg = f"chunk_size must be >= 1, got {self.chunk_size}"
            raise InvalidArgumentError(msg)
        if not self.extensions:
            msg = "extensions must not be empty"
            raise InvalidArgumentError(msg)
