"""Thread-safe distribution of tiles to workers."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

from utfgrid.core.types import TileDescriptor


class TileJobQueue:
    """Hands out each tile of a tile sequence to exactly one worker.

    The underlying iterator is private; callers only see
    :meth:`next_tile`, which returns None once every tile has been claimed.
    """

    def __init__(self, tiles: Iterable[TileDescriptor]) -> None:
        self._tiles = iter(tiles)
        self._lock = threading.Lock()  # Guards the iterator and counters
        self._exhausted = False
        self._claimed = 0
        self._active_workers = 0

    def next_tile(self) -> TileDescriptor | None:
        """Claim the next tile, or return None if the queue is exhausted."""
        with self._lock:
            if self._exhausted:
                return None
            tile = next(self._tiles, None)
            if tile is None:
                self._exhausted = True
                return None
            self._claimed += 1
            return tile

    @property
    def claimed(self) -> int:
        """Number of tiles handed out so far."""
        with self._lock:
            return self._claimed

    # ------------------------------------------------------------------
    # Worker bookkeeping
    # ------------------------------------------------------------------

    def worker_started(self) -> None:
        with self._lock:
            self._active_workers += 1

    def worker_finished(self) -> None:
        with self._lock:
            self._active_workers -= 1

    @property
    def active_workers(self) -> int:
        with self._lock:
            return self._active_workers

    @contextmanager
    def worker(self) -> Iterator[TileJobQueue]:
        """Count the calling worker as active for the duration of the block."""
        self.worker_started()
        try:
            yield self
        finally:
            self.worker_finished()
