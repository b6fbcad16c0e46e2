"""Tile math, sampling and UTFGrid encoding."""

from .encoder import decode_char, encode_char, encode_tile
from .errors import (
    ConfigurationError,
    IdentifyError,
    InvalidExtentError,
    MapOpenError,
    ProjectionMismatchError,
    TileWriteError,
    UTFGridError,
)
from .pyramid import count_tiles, describe_pyramid, describe_tiles, parse_levels
from .sampler import collect_attributes, sample_tile
from .types import (
    AttributeSet,
    CellGroup,
    EncodedTile,
    GenerationConfig,
    GeoExtent,
    TileCoord,
    TileDescriptor,
)

__all__ = [
    "AttributeSet",
    "CellGroup",
    "ConfigurationError",
    "EncodedTile",
    "GenerationConfig",
    "GeoExtent",
    "IdentifyError",
    "InvalidExtentError",
    "MapOpenError",
    "ProjectionMismatchError",
    "TileCoord",
    "TileDescriptor",
    "TileWriteError",
    "UTFGridError",
    "collect_attributes",
    "count_tiles",
    "decode_char",
    "describe_pyramid",
    "describe_tiles",
    "encode_char",
    "encode_tile",
    "parse_levels",
    "sample_tile",
]
