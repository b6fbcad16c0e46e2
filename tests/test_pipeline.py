"""End-to-end tests for the worker pool."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from utfgrid.core.encoder import encode_char
from utfgrid.core.errors import IdentifyError, MapOpenError, ProjectionMismatchError
from utfgrid.core.pyramid import describe_pyramid
from utfgrid.core.types import GenerationConfig, GeoExtent, TileCoord, TileDescriptor
from utfgrid.generate import TileOutcome, TileWriter, generate_tiles, prepare_map, process_tile

from conftest import PARK_EXTENT, FakeMapSource

WORLD = GeoExtent(-3e7, -3e7, 3e7, 3e7)


def _tree(root: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class TestGenerateTiles:
    def test_writes_one_grid_per_level(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=2)
        stats = generate_tiles(park_map.open, describe_pyramid(range(3), PARK_EXTENT), config)

        assert (stats.written, stats.skipped, stats.empty, stats.failed) == (3, 0, 0, 0)
        assert sorted(_tree(temp_dir)) == [
            "0/0/0.grid.json",
            "1/1/0.grid.json",
            "2/2/1.grid.json",
        ]

        data = json.loads((temp_dir / "2" / "2" / "1.grid.json").read_text(encoding="utf-8"))
        assert data["keys"] == ["", "0"]
        assert data["data"] == {"0": {"id": 7, "name": "Central"}}
        assert len(data["grid"]) == 128
        assert all(len(row) == 128 for row in data["grid"])
        assert set("".join(data["grid"])) == {encode_char(0), encode_char(1)}

    def test_empty_tiles_not_written(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=4, grid_size=16)
        stats = generate_tiles(park_map.open, describe_pyramid([2], WORLD), config)

        assert stats.written == 1
        assert stats.empty == 15
        assert list(_tree(temp_dir)) == ["2/2/1.grid.json"]

    def test_second_run_is_idempotent(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=3, grid_size=32)
        generate_tiles(park_map.open, describe_pyramid(range(4), PARK_EXTENT), config)
        first_tree = _tree(temp_dir)

        rerun = FakeMapSource(park_map.features)
        stats = generate_tiles(rerun.open, describe_pyramid(range(4), PARK_EXTENT), config)

        assert stats.skipped == len(first_tree)
        assert stats.written == 0
        assert rerun.identify_calls == 0
        assert _tree(temp_dir) == first_tree

    def test_overwrite_regenerates(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=1, grid_size=8)
        generate_tiles(park_map.open, describe_pyramid([0], PARK_EXTENT), config)

        overwrite = GenerationConfig(destination=temp_dir, workers=1, grid_size=8, overwrite=True)
        stats = generate_tiles(park_map.open, describe_pyramid([0], PARK_EXTENT), overwrite)
        assert stats.written == 1
        assert stats.skipped == 0

    def test_each_worker_opens_own_handle(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=4, grid_size=8)
        generate_tiles(park_map.open, describe_pyramid(range(5), WORLD), config)

        # One probe handle plus one per worker, all closed
        assert park_map.opened == 5
        assert park_map.closed == 5
        assert all(name.startswith("utfgrid-worker-") for name in park_map.thread_names)

    def test_identify_count(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=2, grid_size=8)
        generate_tiles(park_map.open, describe_pyramid([0, 1], PARK_EXTENT), config)
        assert park_map.identify_calls == 2 * 8 * 8

    def test_allowlist_applied(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, fields=frozenset({"name"}), grid_size=8)
        generate_tiles(park_map.open, describe_pyramid([0], PARK_EXTENT), config)

        data = json.loads((temp_dir / "0" / "0" / "0.grid.json").read_text(encoding="utf-8"))
        assert data["data"] == {"0": {"name": "Central"}}

    def test_gzip_tree(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, gzip=True, grid_size=8)
        generate_tiles(park_map.open, describe_pyramid([0, 1], PARK_EXTENT), config)
        assert sorted(_tree(temp_dir)) == ["0/0/0.grid.json.gz", "1/1/0.grid.json.gz"]


class TestFailures:
    def test_projection_mismatch_writes_nothing(self, temp_dir: Path):
        source = FakeMapSource([(PARK_EXTENT, {"a": 1})], projection=4326)
        config = GenerationConfig(destination=temp_dir, workers=4)

        with pytest.raises(ProjectionMismatchError) as exc_info:
            generate_tiles(source.open, describe_pyramid(range(3), PARK_EXTENT), config)

        assert exc_info.value.code == 4326
        assert source.opened == 1
        assert source.identify_calls == 0
        assert _tree(temp_dir) == {}

    def test_worker_open_failure_aborts_run(self, temp_dir: Path, park_map: FakeMapSource):
        opened = []

        def factory():
            opened.append(1)
            if len(opened) > 1:
                raise MapOpenError("Unable to open map at test")
            return park_map.open()

        config = GenerationConfig(destination=temp_dir, workers=2, grid_size=8)
        with pytest.raises(MapOpenError):
            generate_tiles(factory, describe_pyramid(range(3), PARK_EXTENT), config)
        assert _tree(temp_dir) == {}

    def test_write_failure_is_not_fatal(self, temp_dir: Path, park_map: FakeMapSource):
        (temp_dir / "0").write_text("in the way")
        config = GenerationConfig(destination=temp_dir, workers=1, grid_size=8)

        stats = generate_tiles(park_map.open, describe_pyramid([0, 1], PARK_EXTENT), config)

        assert stats.failed == 1
        assert stats.written == 1
        assert stats.errors[0][0].level == 0
        assert (temp_dir / "1" / "1" / "0.grid.json").exists()

    def test_failed_identify_call_leaves_tile_for_rerun(self, temp_dir: Path):
        class FlakySource(FakeMapSource):
            failures = 1

            def count_identify(self):
                super().count_identify()
                with self._lock:
                    if self.failures:
                        self.failures -= 1
                        raise IdentifyError("HTTP 503")

        source = FlakySource([(WORLD, {"name": "Earth"})])
        config = GenerationConfig(destination=temp_dir, workers=1, grid_size=8)

        stats = generate_tiles(source.open, describe_pyramid([0], PARK_EXTENT), config)
        assert (stats.written, stats.failed) == (0, 1)
        assert "HTTP 503" in stats.errors[0][1]
        assert _tree(temp_dir) == {}

        stats = generate_tiles(source.open, describe_pyramid([0], PARK_EXTENT), config)
        assert (stats.written, stats.failed) == (1, 0)
        data = json.loads((temp_dir / "0" / "0" / "0.grid.json").read_text(encoding="utf-8"))
        assert all(row == encode_char(1) * 8 for row in data["grid"])

    def test_projection_check_can_be_skipped(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, workers=2, grid_size=8)
        generate_tiles(
            park_map.open, describe_pyramid([0], PARK_EXTENT), config, check_projection=False
        )
        assert park_map.opened == 2

    def test_unexpected_error_stops_other_workers(self, temp_dir: Path):
        class BrokenSource(FakeMapSource):
            def count_identify(self):
                super().count_identify()
                raise RuntimeError("identify crashed")

        source = BrokenSource([(PARK_EXTENT, {"a": 1})], full_extent=WORLD)
        config = GenerationConfig(destination=temp_dir, workers=3, grid_size=4)

        with pytest.raises(RuntimeError, match="identify crashed"):
            generate_tiles(source.open, describe_pyramid(range(4), WORLD), config)
        # Every worker stops after at most one tile
        assert source.identify_calls <= 3
        assert _tree(temp_dir) == {}


class TestProcessTile:
    def test_skips_existing_without_identify(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, grid_size=8)
        tile = next(describe_pyramid([0], PARK_EXTENT))
        writer = TileWriter(config)
        handle = park_map.open()

        assert process_tile(handle, tile, writer, config) == (TileOutcome.WRITTEN, None)
        calls = park_map.identify_calls
        assert process_tile(handle, tile, writer, config) == (TileOutcome.SKIPPED, None)
        assert park_map.identify_calls == calls

    def test_empty_tile(self, temp_dir: Path, park_map: FakeMapSource):
        config = GenerationConfig(destination=temp_dir, grid_size=8)
        tile = TileDescriptor(
            level=1,
            coord=TileCoord(row=1, col=0),
            extent=GeoExtent(-2e7, -2e7, -1e7, -1e7),
        )
        outcome = process_tile(park_map.open(), tile, TileWriter(config), config)
        assert outcome == (TileOutcome.EMPTY, None)
        assert _tree(temp_dir) == {}


class TestPrepareMap:
    def test_uses_full_extent(self, park_map: FakeMapSource):
        assert prepare_map(park_map.open) == PARK_EXTENT
        assert park_map.closed == 1

    def test_explicit_extent_wins(self, park_map: FakeMapSource):
        assert prepare_map(park_map.open, WORLD) == WORLD

    def test_projection_checked(self):
        source = FakeMapSource([], projection=None)
        with pytest.raises(ProjectionMismatchError):
            prepare_map(source.open)
