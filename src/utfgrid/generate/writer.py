"""Writing encoded tiles to the output tree."""

from __future__ import annotations

import gzip
import json
import logging
import os
import uuid
from pathlib import Path

from utfgrid.config import GRID_SUFFIX, GZIP_LEVEL, GZIP_SUFFIX, JSON_INDENT
from utfgrid.core.errors import TileWriteError
from utfgrid.core.types import EncodedTile, GenerationConfig, TileDescriptor

logger = logging.getLogger(__name__)


def tile_path(destination: Path, tile: TileDescriptor, compress: bool = False) -> Path:
    """Output path ``{destination}/{level}/{col}/{row}.grid.json[.gz]``."""
    name = f"{tile.row}{GRID_SUFFIX}"
    if compress:
        name += GZIP_SUFFIX
    return Path(destination) / str(tile.level) / str(tile.col) / name


def serialize_tile(encoded: EncodedTile) -> bytes:
    """UTF-8 JSON for an encoded tile, keys ordered grid, keys, data."""
    text = json.dumps(
        encoded.to_json_dict(),
        indent=JSON_INDENT,
        ensure_ascii=False,
        default=str,
    )
    return text.encode("utf-8")


class TileWriter:
    """Decides which tiles need writing and writes them atomically.

    Files are written to a temporary sibling and renamed into place, so an
    interrupted run never leaves a truncated grid at the final path.
    """

    def __init__(self, config: GenerationConfig) -> None:
        self.config = config

    def path_for(self, tile: TileDescriptor) -> Path:
        return tile_path(self.config.destination, tile, self.config.gzip)

    def needs_write(self, tile: TileDescriptor) -> bool:
        """True if the tile's file is missing or overwriting was requested."""
        return self.config.overwrite or not self.path_for(tile).exists()

    def write(self, tile: TileDescriptor, encoded: EncodedTile | None) -> Path | None:
        """Write ``encoded`` for ``tile``.

        Args:
            tile: The tile being written
            encoded: Encoded grid, or None for a tile without data

        Returns:
            Path of the written file, or None if the tile was empty

        Raises:
            TileWriteError: If serialization or any file operation fails
        """
        if encoded is None:
            return None

        path = self.path_for(tile)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        logger.debug("Saving %s to %s", tile, path)
        try:
            payload = serialize_tile(encoded)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                if self.config.gzip:
                    # Empty name and zero mtime keep the gzip header reproducible
                    with gzip.GzipFile(
                        filename="", mode="wb", fileobj=f,
                        compresslevel=GZIP_LEVEL, mtime=0,
                    ) as gz:
                        gz.write(payload)
                else:
                    f.write(payload)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as e:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as cleanup_err:
                logger.warning("Failed to remove %s: %s", temp_path, cleanup_err)
            raise TileWriteError(f"Failed to write tile {tile} to {path}: {e}") from e
        return path
