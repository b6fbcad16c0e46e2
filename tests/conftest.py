"""Test fixtures for utfgrid tests."""

from __future__ import annotations

import tempfile
import threading
from pathlib import Path
from typing import Any, Generator, Iterator

import pytest

from utfgrid.core.types import GeoExtent
from utfgrid.maps.base import MapHandle

WEB_MERCATOR = 3857

#: Extent in the north-east quadrant; a single tile at levels 0, 1 and 2
PARK_EXTENT = GeoExtent(1_000_000.0, 1_000_000.0, 2_000_000.0, 2_000_000.0)


class FakeMapSource:
    """In-memory map made of rectangular features.

    Features are (extent, attributes) pairs, topmost first. A feature is
    identified when its extent overlaps the queried pixel.
    """

    def __init__(
        self,
        features: list[tuple[GeoExtent, dict[str, Any]]],
        projection: int | None = WEB_MERCATOR,
        full_extent: GeoExtent = PARK_EXTENT,
    ) -> None:
        self.features = features
        self.projection = projection
        self.full_extent = full_extent
        self._lock = threading.Lock()
        self.identify_calls = 0
        self.opened = 0
        self.closed = 0
        self.thread_names: set[str] = set()

    def open(self, location: str | None = None) -> FakeMap:
        with self._lock:
            self.opened += 1
        return FakeMap(self)

    def count_identify(self) -> None:
        with self._lock:
            self.identify_calls += 1
            self.thread_names.add(threading.current_thread().name)

    def count_close(self) -> None:
        with self._lock:
            self.closed += 1


class FakeMap(MapHandle):
    def __init__(self, source: FakeMapSource) -> None:
        self.source = source

    def projection(self) -> int | None:
        return self.source.projection

    def full_extent(self) -> GeoExtent:
        return self.source.full_extent

    def identify_pixel(self, extent: GeoExtent) -> Iterator[tuple[str, Any]]:
        self.source.count_identify()
        pairs = []
        for feature, attributes in self.source.features:
            if (
                extent.xmin < feature.xmax and extent.xmax > feature.xmin
                and extent.ymin < feature.ymax and extent.ymax > feature.ymin
            ):
                pairs.extend(attributes.items())
        return iter(pairs)

    def close(self) -> None:
        self.source.count_close()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def park_map() -> FakeMapSource:
    """A map with one park feature covering PARK_EXTENT."""
    return FakeMapSource([(PARK_EXTENT, {"name": "Central", "id": 7})])
