"""Exception hierarchy for utfgrid."""

from __future__ import annotations


class UTFGridError(Exception):
    """Base class for all utfgrid errors."""


class ConfigurationError(UTFGridError):
    """Invalid run parameters (levels, worker count, extent)."""


class InvalidExtentError(ConfigurationError):
    """A GeoExtent with inverted or zero-size bounds."""


class MapOpenError(UTFGridError):
    """The map could not be opened or its description could not be read."""


class ProjectionMismatchError(UTFGridError):
    """The map is not in spherical Web Mercator."""

    def __init__(self, code: int | None) -> None:
        super().__init__(
            f"Spatial reference of map must be Web Mercator (is {code})"
        )
        self.code = code


class IdentifyError(UTFGridError):
    """A single attribute probe failed.

    Ends the attribute scan for one pixel; attributes already collected
    for that pixel are kept.
    """


class TileWriteError(UTFGridError):
    """Serializing or writing one tile failed. The tile is left absent."""
