"""Sampling a tile's attributes on a regular pixel grid."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

import numpy as np

from utfgrid.config import GRID_SIZE, NODATA_VALUE

from .errors import IdentifyError
from .types import AttributeSet, CellGroup, GeoExtent, TileDescriptor

if TYPE_CHECKING:
    from utfgrid.maps.base import MapHandle

logger = logging.getLogger(__name__)


def pixel_extents(extent: GeoExtent, size: int = GRID_SIZE) -> tuple[np.ndarray, np.ndarray, float, float]:
    """Sample cell origins for ``extent`` split into ``size`` x ``size`` cells.

    Cells are ``extent / (size - 1)`` wide so that the sample points span
    the tile inclusively on both edges.

    Returns:
        Tuple of (left edges per column, top edges per row, cell width, cell height)
    """
    cell_width = extent.width / (size - 1)
    cell_height = extent.height / (size - 1)
    steps = np.arange(size, dtype=np.float64)
    lefts = extent.xmin + steps * cell_width
    tops = extent.ymax - steps * cell_height
    return lefts, tops, cell_width, cell_height


def collect_attributes(
    pairs: Iterable[tuple[str, Any]],
    fields: frozenset[str] | None = None,
) -> AttributeSet:
    """Merge the attribute pairs found under one pixel.

    Args:
        pairs: (key, value) pairs, topmost layer first
        fields: Keys to keep, or None to keep every key

    Returns:
        The pixel's canonical attribute set. The first value seen for a key
        wins; values equal to ``NoData`` are dropped.
    """
    found: dict[str, Any] = {}
    iterator = iter(pairs)
    while True:
        try:
            key, value = next(iterator)
        except StopIteration:
            break
        except IdentifyError as e:
            logger.debug("Attribute scan stopped after %d pairs: %s", len(found), e)
            break
        if value == NODATA_VALUE:
            continue
        if fields is not None and key not in fields:
            continue
        found.setdefault(key, value)
    return AttributeSet(found.items())


def sample_tile(
    map_handle: MapHandle,
    tile: TileDescriptor,
    fields: frozenset[str] | None = None,
    size: int = GRID_SIZE,
) -> CellGroup:
    """Identify every sample cell of ``tile`` and group cells by attributes.

    Args:
        map_handle: Open map owned by the calling worker
        tile: Tile to sample
        fields: Optional attribute allowlist
        size: Samples per tile side

    Returns:
        Distinct non-empty attribute sets mapped to their (row, col) cells,
        in first-seen order

    Raises:
        IdentifyError: If an identify call fails before producing any pair.
            A failure while reading the pairs only ends that cell's scan.
    """
    lefts, tops, cell_width, cell_height = pixel_extents(tile.extent, size)
    cells: CellGroup = {}
    for y in range(size):
        top = float(tops[y])
        for x in range(size):
            left = float(lefts[x])
            pixel = GeoExtent(
                xmin=left,
                ymin=top - cell_height,
                xmax=left + cell_width,
                ymax=top,
            )
            try:
                pairs = map_handle.identify_pixel(pixel)
            except IdentifyError as e:
                raise IdentifyError(
                    f"Identify failed for cell ({y}, {x}) of tile {tile}: {e}"
                ) from e
            attributes = collect_attributes(pairs, fields)
            if attributes:
                cells.setdefault(attributes, []).append((y, x))
    return cells
