"""Worker loop for parallel grid generation.

Each worker owns one map handle and pulls tiles from the shared queue until
it is exhausted or the run is aborted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from utfgrid.core.encoder import encode_tile
from utfgrid.core.errors import IdentifyError, TileWriteError
from utfgrid.core.sampler import sample_tile
from utfgrid.core.types import GenerationConfig, TileDescriptor
from utfgrid.maps.base import MapHandle

from .queue import TileJobQueue
from .writer import TileWriter

logger = logging.getLogger(__name__)


class TileOutcome(Enum):
    """What happened to one tile."""

    WRITTEN = "written"  # File created or replaced
    SKIPPED = "skipped"  # File already existed
    EMPTY = "empty"  # No data under the tile, nothing written
    FAILED = "failed"  # Identify or write failed, tile left unwritten


@dataclass
class GenerationStats:
    """Thread-safe tally of a generation run."""

    written: int = 0
    skipped: int = 0
    empty: int = 0
    failed: int = 0
    errors: list[tuple[TileDescriptor, str]] = field(default_factory=list)
    fatal: BaseException | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, tile: TileDescriptor, outcome: TileOutcome, error: str | None = None) -> None:
        with self._lock:
            if outcome is TileOutcome.WRITTEN:
                self.written += 1
            elif outcome is TileOutcome.SKIPPED:
                self.skipped += 1
            elif outcome is TileOutcome.EMPTY:
                self.empty += 1
            else:
                self.failed += 1
                self.errors.append((tile, error or "unknown error"))

    def record_fatal(self, error: BaseException) -> None:
        """Keep the first error that aborted the run."""
        with self._lock:
            if self.fatal is None:
                self.fatal = error

    @property
    def processed(self) -> int:
        with self._lock:
            return self.written + self.skipped + self.empty + self.failed


def process_tile(
    map_handle: MapHandle,
    tile: TileDescriptor,
    writer: TileWriter,
    config: GenerationConfig,
) -> tuple[TileOutcome, str | None]:
    """Sample, encode and write one tile.

    Existing files are skipped before any identify call is made. A failed
    identify call leaves the tile unwritten so a later run retries it.

    Returns:
        Tuple of (outcome, error_message)
    """
    if not writer.needs_write(tile):
        return TileOutcome.SKIPPED, None

    logger.debug("%s generating tile %s", threading.current_thread().name, tile)
    try:
        cells = sample_tile(map_handle, tile, config.fields, config.grid_size)
    except IdentifyError as e:
        logger.warning("%s", e)
        return TileOutcome.FAILED, str(e)
    encoded = encode_tile(cells, config.grid_size)
    if encoded is None:
        return TileOutcome.EMPTY, None

    try:
        writer.write(tile, encoded)
    except TileWriteError as e:
        logger.error("%s", e)
        return TileOutcome.FAILED, str(e)
    return TileOutcome.WRITTEN, None


def run_worker(
    queue: TileJobQueue,
    map_factory: Callable[[], MapHandle],
    config: GenerationConfig,
    stats: GenerationStats,
    abort: threading.Event,
    progress: Callable[[int], object] | None = None,
) -> None:
    """Process tiles from ``queue`` until it is exhausted or ``abort`` is set.

    Any error other than a failed tile write stops the whole run: it is
    recorded in ``stats`` and ``abort`` is set for every other worker.
    """
    name = threading.current_thread().name
    writer = TileWriter(config)
    with queue.worker():
        try:
            with map_factory() as map_handle:
                logger.debug("%s started", name)
                while not abort.is_set():
                    tile = queue.next_tile()
                    if tile is None:
                        break
                    outcome, error = process_tile(map_handle, tile, writer, config)
                    stats.record(tile, outcome, error)
                    if progress is not None:
                        progress(1)
        except Exception as e:
            logger.exception("%s stopped", name)
            stats.record_fatal(e)
            abort.set()
        else:
            logger.debug("%s finished", name)
