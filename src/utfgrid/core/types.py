"""Shared type definitions for the utfgrid core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, NamedTuple

from utfgrid.config import DEFAULT_WORKERS, GRID_SIZE

from .errors import ConfigurationError, InvalidExtentError


@dataclass(frozen=True)
class GeoExtent:
    """Axis-aligned rectangle in Web Mercator meters.

    Attributes:
        xmin: Western edge
        ymin: Southern edge
        xmax: Eastern edge
        ymax: Northern edge
    """

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self) -> None:
        if not (self.xmax > self.xmin and self.ymax > self.ymin):
            raise InvalidExtentError(
                f"Extent must have xmax > xmin and ymax > ymin, got "
                f"({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
            )

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def clamp(self, low: float, high: float) -> GeoExtent:
        """Return this extent with every bound limited to [low, high]."""
        return GeoExtent(
            xmin=max(self.xmin, low),
            ymin=max(self.ymin, low),
            xmax=min(self.xmax, high),
            ymax=min(self.ymax, high),
        )

    @classmethod
    def parse(cls, text: str) -> GeoExtent:
        """Parse ``"xmin,ymin,xmax,ymax"``."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise InvalidExtentError(
                f"Extent must be 'xmin,ymin,xmax,ymax', got {text!r}"
            )
        try:
            xmin, ymin, xmax, ymax = (float(p) for p in parts)
        except ValueError as e:
            raise InvalidExtentError(f"Extent is not numeric: {text!r}") from e
        return cls(xmin, ymin, xmax, ymax)


class TileCoord(NamedTuple):
    """Position of a tile in one level's grid, origin at the top-left.

    Attributes:
        row: Row index (0-based, north to south)
        col: Column index (0-based, west to east)
    """

    row: int
    col: int


@dataclass(frozen=True)
class TileDescriptor:
    """One tile of the pyramid: its level, grid position and footprint."""

    level: int
    coord: TileCoord
    extent: GeoExtent

    @property
    def row(self) -> int:
        return self.coord.row

    @property
    def col(self) -> int:
        return self.coord.col

    def __str__(self) -> str:
        return f"{self.level}/{self.col}/{self.row}"


class AttributeSet:
    """Canonical, hashable set of attribute name/value pairs.

    Pairs are kept sorted by key so two sets with the same pairs compare
    and hash equal regardless of the order they were collected in. Values
    of different types never match, so ``1``, ``1.0`` and ``True`` stay
    distinct.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[tuple[str, Any]] = ()) -> None:
        self._items: tuple[tuple[str, Any], ...] = tuple(
            sorted(items, key=lambda item: item[0])
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> AttributeSet:
        return cls(mapping.items())

    @property
    def items(self) -> tuple[tuple[str, Any], ...]:
        return self._items

    def keys(self) -> list[str]:
        return [k for k, _ in self._items]

    def to_dict(self) -> dict[str, Any]:
        return dict(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self):
        return iter(self._items)

    def _identity(self) -> tuple[tuple[str, type, Any], ...]:
        return tuple((key, type(value), value) for key, value in self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributeSet):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return f"AttributeSet({self.to_dict()!r})"


#: Distinct attribute sets mapped to the (row, col) sample cells they cover
CellGroup = dict[AttributeSet, list[tuple[int, int]]]


@dataclass(frozen=True)
class EncodedTile:
    """UTFGrid payload for one tile.

    Attributes:
        grid: One string per sample row, one code character per cell
        keys: Key for each code index; index 0 is always the empty key
        data: Attribute set for every non-empty key
    """

    grid: tuple[str, ...]
    keys: tuple[str, ...]
    data: dict[str, AttributeSet] = field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "grid": list(self.grid),
            "keys": list(self.keys),
            "data": {key: attrs.to_dict() for key, attrs in self.data.items()},
        }

    def lookup(self, row: int, col: int) -> dict[str, Any] | None:
        """Resolve one grid cell to its attributes, or None for no data."""
        from .encoder import decode_char

        key = self.keys[decode_char(self.grid[row][col])]
        if not key:
            return None
        return self.data[key].to_dict()


@dataclass(frozen=True)
class GenerationConfig:
    """Run-wide settings shared read-only by every worker.

    Attributes:
        destination: Root directory of the output tree
        gzip: Write ``.grid.json.gz`` files
        overwrite: Regenerate tiles whose file already exists
        fields: Attribute names to keep, or None to keep all
        workers: Number of worker threads
        grid_size: Samples per tile side
    """

    destination: Path
    gzip: bool = False
    overwrite: bool = False
    fields: frozenset[str] | None = None
    workers: int = DEFAULT_WORKERS
    grid_size: int = GRID_SIZE

    def __post_init__(self) -> None:
        object.__setattr__(self, "destination", Path(self.destination))
        if self.fields is not None:
            object.__setattr__(self, "fields", frozenset(self.fields))
        if self.workers < 1:
            raise ConfigurationError(f"Worker count must be at least 1, got {self.workers}")
        if self.grid_size < 2:
            raise ConfigurationError(f"Grid size must be at least 2, got {self.grid_size}")
