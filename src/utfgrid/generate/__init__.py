"""Parallel generation of UTFGrid tile trees."""

from .pool import generate_tiles, prepare_map
from .queue import TileJobQueue
from .worker import GenerationStats, TileOutcome, process_tile
from .writer import TileWriter, tile_path

__all__ = [
    "GenerationStats",
    "TileJobQueue",
    "TileOutcome",
    "TileWriter",
    "generate_tiles",
    "prepare_map",
    "process_tile",
    "tile_path",
]
