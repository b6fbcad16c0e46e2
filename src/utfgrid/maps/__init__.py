"""Map handles consumed by the grid generator."""

from __future__ import annotations

from utfgrid.core.errors import MapOpenError

from .arcgis import ArcGISMapService
from .base import MapHandle, validate_projection


def open_map(location: str) -> MapHandle:
    """Open the map at ``location``.

    Args:
        location: ArcGIS REST ``MapServer`` URL

    Raises:
        MapOpenError: If the location is unsupported or the map cannot be read
    """
    if location.startswith(("http://", "https://")):
        return ArcGISMapService(location)
    raise MapOpenError(
        f"Unable to open map at {location}: only ArcGIS REST MapServer URLs are supported"
    )


__all__ = [
    "ArcGISMapService",
    "MapHandle",
    "open_map",
    "validate_projection",
]
