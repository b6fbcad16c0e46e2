"""Running a pool of grid workers over a tile pyramid."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from utfgrid.core.types import GenerationConfig, GeoExtent, TileDescriptor
from utfgrid.maps.base import MapHandle, validate_projection

from .queue import TileJobQueue
from .worker import GenerationStats, run_worker

logger = logging.getLogger(__name__)


def prepare_map(
    map_factory: Callable[[], MapHandle],
    extent: GeoExtent | None = None,
) -> GeoExtent:
    """Check the map's projection and resolve the extent to tile.

    Args:
        map_factory: Opens a new handle on the map
        extent: Extent to tile, or None to use the map's full extent

    Returns:
        The extent to tile

    Raises:
        MapOpenError: If the map cannot be opened
        ProjectionMismatchError: If the map is not in Web Mercator
    """
    with map_factory() as handle:
        validate_projection(handle)
        if extent is None:
            extent = handle.full_extent()
    return extent


def generate_tiles(
    map_factory: Callable[[], MapHandle],
    tiles: Iterable[TileDescriptor],
    config: GenerationConfig,
    progress: Callable[[int], object] | None = None,
    check_projection: bool = True,
) -> GenerationStats:
    """Generate grids for ``tiles`` with ``config.workers`` threads.

    The map's projection is checked once on a probe handle before any
    worker starts, unless the caller already did so with
    :func:`prepare_map`. Each worker then opens its own handle. The call
    returns when every worker has finished.

    Args:
        map_factory: Opens a new handle on the map; called once per worker
        tiles: Tiles to generate, each processed by exactly one worker
        config: Run settings
        progress: Optional callback, called with 1 after each tile
        check_projection: Open a probe handle and validate the projection
            first. Pass False when :func:`prepare_map` has already run.

    Returns:
        Counts of written, skipped, empty and failed tiles

    Raises:
        MapOpenError: If the map cannot be opened
        ProjectionMismatchError: If the map is not in Web Mercator
        Exception: The first error that aborted a worker, re-raised after
            all workers have stopped
    """
    if check_projection:
        with map_factory() as probe:
            validate_projection(probe)

    queue = TileJobQueue(tiles)
    stats = GenerationStats()
    abort = threading.Event()

    threads = [
        threading.Thread(
            target=run_worker,
            args=(queue, map_factory, config, stats, abort, progress),
            name=f"utfgrid-worker-{i}",
            daemon=True,
        )
        for i in range(config.workers)
    ]
    logger.info("Starting %d worker(s), writing to %s", len(threads), config.destination)
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    if stats.fatal is not None:
        logger.error(
            "Generation aborted after %d tile(s): %s", stats.processed, stats.fatal
        )
        raise stats.fatal

    logger.info(
        "Generation finished: %d written, %d skipped, %d empty, %d failed",
        stats.written, stats.skipped, stats.empty, stats.failed,
    )
    return stats
