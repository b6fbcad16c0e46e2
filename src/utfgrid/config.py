"""Centralized configuration for utfgrid.

All tunable parameters are defined here with sensible defaults.
Values can be overridden via environment variables.

Environment Variables:
    UTFGRID_WORKERS: Number of worker threads (default: CPU count)
    UTFGRID_GZIP_LEVEL: Compression level for .gz output (default: 9)
    UTFGRID_REQUEST_TIMEOUT: Map service request timeout in seconds (default: 30)
"""

from __future__ import annotations

import logging
import math
import os

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a float from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(
                "Invalid number for %s: %r, using default %.1f", name, value, default
            )
    return default


# =============================================================================
# Web Mercator Tiling
# =============================================================================

#: Spherical Web Mercator earth radius in meters
EARTH_RADIUS: float = 6378137.0

#: Half the projected world width; the tile origin is (-ORIGIN_SHIFT, ORIGIN_SHIFT)
ORIGIN_SHIFT: float = math.pi * EARTH_RADIUS

#: Rendered tile size in pixels
TILE_PIXELS: int = 256

#: Meters per pixel at level 0
INITIAL_RESOLUTION: float = 2 * math.pi * EARTH_RADIUS / TILE_PIXELS

#: Highest zoom level accepted on input
MAX_LEVEL: int = 30

#: Levels generated when none are given
DEFAULT_LEVELS: tuple[int, ...] = tuple(range(20))

#: Projection codes (EPSG / ESRI) accepted as spherical Web Mercator
WEB_MERCATOR_CODES: frozenset[int] = frozenset({3857, 3785, 900913, 102100, 102113})


# =============================================================================
# Grid Sampling
# =============================================================================

#: Samples per side of a UTFGrid tile
GRID_SIZE: int = 128

#: Attribute value that marks a raster pixel without data
NODATA_VALUE: str = "NoData"


# =============================================================================
# Output
# =============================================================================

#: Suffix of every grid file
GRID_SUFFIX: str = ".grid.json"

#: Extra suffix for compressed grid files
GZIP_SUFFIX: str = ".gz"

#: Compression level for gzip output
GZIP_LEVEL: int = _get_env_int("UTFGRID_GZIP_LEVEL", 9)

#: JSON indentation of grid files
JSON_INDENT: int = 2


# =============================================================================
# Workers / Map Services
# =============================================================================

#: Default worker thread count
DEFAULT_WORKERS: int = _get_env_int("UTFGRID_WORKERS", os.cpu_count() or 1)

#: Timeout for map service HTTP requests (seconds)
REQUEST_TIMEOUT: float = _get_env_float("UTFGRID_REQUEST_TIMEOUT", 30.0)


# =============================================================================
# Validation
# =============================================================================


def _validate_config() -> None:
    """Validate configuration values and log warnings for out-of-range settings."""
    global GZIP_LEVEL, DEFAULT_WORKERS, REQUEST_TIMEOUT

    if not 1 <= GZIP_LEVEL <= 9:
        clamped = min(max(GZIP_LEVEL, 1), 9)
        logger.warning("GZIP_LEVEL=%d is out of range, clamping to %d", GZIP_LEVEL, clamped)
        GZIP_LEVEL = clamped

    if DEFAULT_WORKERS < 1:
        logger.warning("DEFAULT_WORKERS=%d is too low, clamping to 1", DEFAULT_WORKERS)
        DEFAULT_WORKERS = 1

    if REQUEST_TIMEOUT <= 0:
        logger.warning(
            "REQUEST_TIMEOUT=%.1f must be positive, using 30", REQUEST_TIMEOUT
        )
        REQUEST_TIMEOUT = 30.0


_validate_config()
