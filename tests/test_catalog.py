"""
Unit tests for batch loading of image statistics.
"""

import tempfile
import threading
from pathlib import Path

import cv2
import numpy as np
import pytest

from histsim import (
    ArrayPixelSource,
    BatchLoadError,
    DecodeError,
    ImageCatalog,
    InvalidImageError,
    LoadCancelledError,
    OpenCVPixelSource,
    load_batch,
)


class CountingSource(ArrayPixelSource):
    """In-memory source that records how often each identifier is decoded."""

    def __init__(self, images):
        super().__init__(images)
        self.calls: dict[str, int] = {}
        self._lock = threading.Lock()

    def load(self, identifier):
        with self._lock:
            self.calls[identifier] = self.calls.get(identifier, 0) + 1
        return super().load(identifier)


def make_images(count: int) -> dict[str, np.ndarray]:
    """Create solid images whose red value encodes their index."""
    images = {}
    for i in range(count):
        img = np.zeros((4, 6, 3), dtype=np.uint8)
        img[:, :, 0] = i
        images[f"img_{i:02d}"] = img
    return images


class TestLoadBatch:
    """Test order, failure policy and caching of ImageCatalog.load_batch."""

    @pytest.mark.parametrize("num_workers", [1, 4])
    def test_order_preserved(self, num_workers):
        """Test that outputs line up with inputs."""
        images = make_images(12)
        ids = list(reversed(images))
        catalog = ImageCatalog(ArrayPixelSource(images), num_workers=num_workers)

        stats = catalog.load_batch(ids)

        assert [s.identifier for s in stats] == ids
        for s in stats:
            assert s.red.median == int(s.identifier.split("_")[1])

    def test_fail_fast_names_first_failure(self):
        """Test that the first failing entry aborts the batch."""
        images = make_images(6)
        ids = ["img_00", "img_01", "missing_a", "img_02", "missing_b"]
        catalog = ImageCatalog(ArrayPixelSource(images), num_workers=3)

        with pytest.raises(BatchLoadError) as exc_info:
            catalog.load_batch(ids)

        assert exc_info.value.identifier == "missing_a"
        assert exc_info.value.position == 2
        assert isinstance(exc_info.value.__cause__, DecodeError)

    def test_invalid_image_aborts_batch(self):
        """Test that a zero-area entry surfaces InvalidImageError as the cause."""
        images = make_images(2)
        images["empty"] = np.zeros((0, 3, 3), dtype=np.uint8)
        catalog = ImageCatalog(ArrayPixelSource(images), num_workers=1)

        with pytest.raises(BatchLoadError) as exc_info:
            catalog.load_batch(["img_00", "empty", "img_01"])

        assert exc_info.value.identifier == "empty"
        assert isinstance(exc_info.value.__cause__, InvalidImageError)

    def test_skip_failed(self):
        """Test that skip_failed drops failing entries and keeps order."""
        images = make_images(4)
        ids = ["img_03", "missing", "img_01", "img_00"]
        catalog = ImageCatalog(ArrayPixelSource(images), num_workers=2, skip_failed=True)

        stats = catalog.load_batch(ids)

        assert [s.identifier for s in stats] == ["img_03", "img_01", "img_00"]

    def test_load_entries_reports_each_outcome(self):
        """Test that load_entries returns per-entry successes and failures."""
        images = make_images(2)
        catalog = ImageCatalog(ArrayPixelSource(images), num_workers=2)

        entries = catalog.load_entries(["img_00", "missing", "img_01"])

        assert [e.identifier for e in entries] == ["img_00", "missing", "img_01"]
        assert [e.ok for e in entries] == [True, False, True]
        assert entries[1].statistics is None
        assert "missing" in entries[1].error

    def test_cached_entries_not_decoded_again(self):
        """Test that statistics are cached across batches."""
        source = CountingSource(make_images(3))
        catalog = ImageCatalog(source, num_workers=2)

        catalog.load_batch(["img_00", "img_01"])
        stats = catalog.load_batch(["img_01", "img_02", "img_00"])

        assert [s.identifier for s in stats] == ["img_01", "img_02", "img_00"]
        assert source.calls == {"img_00": 1, "img_01": 1, "img_02": 1}
        assert len(catalog) == 3
        assert "img_02" in catalog
        assert catalog.get("img_00") is stats[2]

    def test_duplicate_identifiers(self):
        """Test that duplicates in one batch are decoded once but returned twice."""
        source = CountingSource(make_images(2))
        catalog = ImageCatalog(source, num_workers=2)

        stats = catalog.load_batch(["img_00", "img_01", "img_00"])

        assert [s.identifier for s in stats] == ["img_00", "img_01", "img_00"]
        assert source.calls["img_00"] == 1

    def test_failures_are_not_cached(self):
        """Test that a failed entry is retried on the next batch."""
        source = CountingSource(make_images(1))
        catalog = ImageCatalog(source, num_workers=1, skip_failed=True)

        catalog.load_batch(["missing"])
        catalog.load_batch(["missing"])

        assert source.calls["missing"] == 2
        assert "missing" not in catalog

    def test_clear(self):
        """Test that clear empties the cache."""
        catalog = ImageCatalog(ArrayPixelSource(make_images(2)))
        catalog.load_batch(["img_00", "img_01"])

        catalog.clear()

        assert len(catalog) == 0
        assert catalog.entries == []

    @pytest.mark.parametrize("num_workers", [1, 4])
    def test_cancelled_before_start(self, num_workers):
        """Test that a set cancel event stops the batch."""
        catalog = ImageCatalog(ArrayPixelSource(make_images(5)), num_workers=num_workers)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(LoadCancelledError):
            catalog.load_batch(list(make_images(5)), cancel_event=cancel)

        assert len(catalog) == 0

    def test_empty_batch(self):
        """Test that an empty batch returns an empty list."""
        assert ImageCatalog(ArrayPixelSource({})).load_batch([]) == []

    def test_module_level_load_batch(self):
        """Test the convenience wrapper."""
        stats = load_batch(["img_01"], source=ArrayPixelSource(make_images(2)))

        assert stats[0].identifier == "img_01"


class TestOpenCVPixelSource:
    """Test decoding real image files."""

    def test_loads_rgb_order(self):
        """Test that BGR files come back in RGB order."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "blue.png"
            img = np.zeros((5, 7, 3), dtype=np.uint8)
            img[:] = (255, 0, 0)  # BGR blue
            cv2.imwrite(str(path), img)

            pixels = OpenCVPixelSource().load(str(path))

            assert pixels.shape == (5, 7, 3)
            assert tuple(pixels[0, 0]) == (0, 0, 255)

    def test_missing_file(self):
        """Test that a missing file raises DecodeError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nope.png"

            with pytest.raises(DecodeError):
                OpenCVPixelSource().load(str(path))

    def test_corrupt_file(self):
        """Test that an undecodable file raises DecodeError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broken.png"
            path.write_bytes(b"definitely not a png")

            with pytest.raises(DecodeError) as exc_info:
                OpenCVPixelSource().load(str(path))
            assert exc_info.value.identifier == str(path)

    def test_catalog_from_files(self):
        """Test loading a batch of files with the default source."""
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = []
            for i, value in enumerate((0, 128, 255)):
                path = Path(tmpdir) / f"img_{i}.png"
                cv2.imwrite(str(path), np.full((8, 8, 3), value, dtype=np.uint8))
                paths.append(str(path))

            stats = ImageCatalog(num_workers=2).load_batch(paths)

            assert [s.green.mean for s in stats] == [0.0, 128.0, 255.0]
            assert all(s.width == 8 and s.height == 8 for s in stats)
