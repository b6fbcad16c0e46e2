"""UTFGrid encoding.

A UTFGrid tile stores one character per sample cell. Character codes map
to indices in the ``keys`` list; index 0 is the empty key. Codes skip
``"`` and ``\\`` so grid rows never need JSON escaping.
"""

from __future__ import annotations

import numpy as np

from utfgrid.config import GRID_SIZE

from .types import AttributeSet, CellGroup, EncodedTile

_QUOTE = 34
_BACKSLASH = 92


def encode_char(index: int) -> str:
    """Grid character for key index ``index``."""
    code = index + 32
    if code >= _QUOTE:
        code += 1
    if code >= _BACKSLASH:
        code += 1
    return chr(code)


def decode_char(char: str) -> int:
    """Key index for grid character ``char`` (inverse of :func:`encode_char`)."""
    code = ord(char)
    if code >= _BACKSLASH + 1:
        code -= 1
    if code >= _QUOTE + 1:
        code -= 1
    return code - 32


def encode_tile(cells: CellGroup, size: int = GRID_SIZE) -> EncodedTile | None:
    """Encode grouped sample cells as a UTFGrid tile.

    Each distinct non-empty attribute set, in the group's iteration order,
    gets the next key ``"0"``, ``"1"``, ... and the grid character of its
    position in ``keys``. Cells not listed in ``cells`` keep the empty code.

    Args:
        cells: Attribute sets mapped to the (row, col) cells they cover
        size: Samples per side of the grid

    Returns:
        The encoded tile, or None if no cell carries data

    Raises:
        ValueError: If a cell lies outside the grid
    """
    buffer = np.full((size, size), encode_char(0), dtype="<U1")
    keys: list[str] = [""]
    data: dict[str, AttributeSet] = {}

    for attributes, positions in cells.items():
        if not attributes or not positions:
            continue
        key = str(len(data))
        code = encode_char(len(keys))
        keys.append(key)
        data[key] = attributes

        index = np.asarray(positions, dtype=np.intp).reshape(-1, 2)
        if index.min() < 0 or index.max() >= size:
            raise ValueError(f"Cell outside the {size}x{size} grid for key {key}")
        buffer[index[:, 0], index[:, 1]] = code

    if not data:
        return None

    return EncodedTile(
        grid=tuple("".join(row) for row in buffer.tolist()),
        keys=tuple(keys),
        data=data,
    )
