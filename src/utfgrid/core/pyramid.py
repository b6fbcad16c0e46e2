"""Web Mercator tile pyramid math.

Tiles follow the standard web scheme: 256 pixel tiles, level 0 is a single
tile covering the world, origin at the top-left corner
``(-pi * R, pi * R)``.
"""

from __future__ import annotations

import math
from typing import Iterable, Iterator

from utfgrid.config import INITIAL_RESOLUTION, MAX_LEVEL, ORIGIN_SHIFT, TILE_PIXELS

from .errors import ConfigurationError
from .types import GeoExtent, TileCoord, TileDescriptor


def resolution(level: int) -> float:
    """Meters per pixel at ``level``."""
    return INITIAL_RESOLUTION / 2**level


def tile_span(level: int) -> float:
    """Side length of one tile at ``level`` in meters."""
    return resolution(level) * TILE_PIXELS


def clamp_extent(extent: GeoExtent) -> GeoExtent:
    """Limit an extent to the valid projected world.

    The upper bound is one meter short of the world edge so that a bound
    lying exactly on the antimeridian or the pole does not spill into a
    tile outside the grid.
    """
    return extent.clamp(-ORIGIN_SHIFT, ORIGIN_SHIFT - 1)


def meters_to_tile(level: int, mx: float, my: float) -> TileCoord:
    """Tile containing the projected point ``(mx, my)`` at ``level``."""
    res = resolution(level)
    px = (mx + ORIGIN_SHIFT) / res
    py = (ORIGIN_SHIFT - my) / res
    return TileCoord(
        row=int(math.floor(py / TILE_PIXELS)),
        col=int(math.floor(px / TILE_PIXELS)),
    )


def tile_extent(level: int, row: int, col: int) -> GeoExtent:
    """Geographic footprint of tile ``(row, col)`` at ``level``."""
    span = tile_span(level)
    left = -ORIGIN_SHIFT + span * col
    top = ORIGIN_SHIFT - span * row
    return GeoExtent(xmin=left, ymin=top - span, xmax=left + span, ymax=top)


def _clamp_coord(level: int, coord: TileCoord) -> TileCoord:
    # A bound on the south or west world edge maps one tile past the grid
    last = 2**level - 1
    return TileCoord(
        row=min(max(coord.row, 0), last),
        col=min(max(coord.col, 0), last),
    )


def _tile_range(level: int, extent: GeoExtent) -> tuple[TileCoord, TileCoord]:
    """Top-left and bottom-right tiles covering the clamped extent."""
    extent = clamp_extent(extent)
    top_left = _clamp_coord(level, meters_to_tile(level, extent.xmin, extent.ymax))
    bottom_right = _clamp_coord(level, meters_to_tile(level, extent.xmax, extent.ymin))
    return top_left, bottom_right


def describe_tiles(level: int, extent: GeoExtent) -> Iterator[TileDescriptor]:
    """Yield every tile at ``level`` that intersects ``extent``.

    Tiles are yielded column by column, north to south within a column.
    """
    top_left, bottom_right = _tile_range(level, extent)
    for col in range(top_left.col, bottom_right.col + 1):
        for row in range(top_left.row, bottom_right.row + 1):
            yield TileDescriptor(
                level=level,
                coord=TileCoord(row=row, col=col),
                extent=tile_extent(level, row, col),
            )


def describe_pyramid(levels: Iterable[int], extent: GeoExtent) -> Iterator[TileDescriptor]:
    """Yield the tiles of every level in ``levels``, in the given level order."""
    for level in levels:
        yield from describe_tiles(level, extent)


def count_tiles(levels: Iterable[int], extent: GeoExtent) -> int:
    """Number of tiles :func:`describe_pyramid` yields, without enumerating them."""
    total = 0
    for level in levels:
        top_left, bottom_right = _tile_range(level, extent)
        total += (bottom_right.col - top_left.col + 1) * (bottom_right.row - top_left.row + 1)
    return total


def validate_levels(levels: Iterable[int]) -> tuple[int, ...]:
    """Check a zoom level list.

    Args:
        levels: Zoom levels to generate

    Returns:
        The levels as a tuple, order preserved

    Raises:
        ConfigurationError: If the list is empty, contains duplicates or
            contains a level outside ``[0, MAX_LEVEL]``
    """
    result = tuple(levels)
    if not result:
        raise ConfigurationError("At least one zoom level is required")
    for level in result:
        if isinstance(level, bool) or not isinstance(level, int):
            raise ConfigurationError(f"Zoom level must be an integer, got {level!r}")
        if not 0 <= level <= MAX_LEVEL:
            raise ConfigurationError(
                f"Zoom level {level} is outside the range 0-{MAX_LEVEL}"
            )
    if len(set(result)) != len(result):
        raise ConfigurationError(f"Duplicate zoom levels in {list(result)}")
    return result


def parse_levels(text: str) -> tuple[int, ...]:
    """Parse a level list such as ``"0,1,2"`` or ``"0-5,8"``.

    Raises:
        ConfigurationError: If the text is malformed or the levels invalid
    """
    levels: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                start, end = (int(p) for p in part.split("-", 1))
                if end < start:
                    raise ConfigurationError(f"Empty level range {part!r}")
                levels.extend(range(start, end + 1))
            else:
                levels.append(int(part))
        except ValueError as e:
            raise ConfigurationError(f"Invalid zoom level {part!r}") from e
    return validate_levels(levels)
