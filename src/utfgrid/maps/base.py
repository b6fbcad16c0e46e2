"""Interface to the map being cooked into grids.

A MapHandle wraps one open map. Handles are not thread-safe: every worker
opens its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

from utfgrid.config import WEB_MERCATOR_CODES
from utfgrid.core.errors import ProjectionMismatchError
from utfgrid.core.types import GeoExtent


class MapHandle(ABC):
    """One open map that can answer identify queries."""

    @abstractmethod
    def projection(self) -> int | None:
        """EPSG/ESRI code of the map's spatial reference, if known."""

    @abstractmethod
    def full_extent(self) -> GeoExtent:
        """Extent of all the map's content in map units."""

    @abstractmethod
    def identify_pixel(self, extent: GeoExtent) -> Iterable[tuple[str, Any]]:
        """Attribute pairs of the visible content under ``extent``.

        Pairs are produced topmost layer first. Iteration may raise
        :class:`~utfgrid.core.errors.IdentifyError`, which ends the scan
        for this pixel; pairs produced before the error remain valid.
        """

    def close(self) -> None:
        """Release the handle's resources."""

    def __enter__(self) -> MapHandle:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def validate_projection(handle: MapHandle) -> None:
    """Raise ProjectionMismatchError unless the map is in Web Mercator."""
    code = handle.projection()
    if code not in WEB_MERCATOR_CODES:
        raise ProjectionMismatchError(code)
