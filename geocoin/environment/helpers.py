"""Utilities for moving around the grid and drawing it."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

from .grid import Cell
from .schemas import LatLng

# Compass direction -> (row step, col step). Rows grow northwards.
DIRECTIONS: Dict[str, Tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}


def chebyshev_distance(a: Cell, b: Cell) -> int:
    """Number of king moves between two cells."""
    return max(abs(a.row - b.row), abs(a.col - b.col))


def step_position(point: LatLng, direction: str, tile_degrees: float) -> LatLng:
    """Return ``point`` moved one tile towards ``direction``.

    Raises:
        ValueError: If ``direction`` is not one of north/south/east/west
    """
    try:
        d_row, d_col = DIRECTIONS[direction.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown direction {direction!r}; expected one of {sorted(DIRECTIONS)}"
        ) from None
    return point.shifted(d_lat=d_row * tile_degrees, d_lng=d_col * tile_degrees)


_DEFAULT_CELL_SYMBOLS: Dict[str, str] = {
    "player": "@ ",
    "cache": "◆ ",
    "empty_cache": "◇ ",
    "blank": "· ",
}


def render_ascii_window(
    center: Cell,
    counts: Mapping[Cell, int],
    *,
    radius: int,
    symbols: Optional[Dict[str, str]] = None,
) -> str:
    """Render the square around ``center`` as text, north at the top.

    ``counts`` maps materialized cache cells to their coin count. Caches with
    coins and empty caches get different glyphs; the player's own cell always
    shows the player glyph. Handy for debugging and for the example CLI.
    """

    if radius <= 0:
        radius = 0

    mapping = {**_DEFAULT_CELL_SYMBOLS}
    if symbols:
        mapping.update(symbols)

    # Look caches up by coordinates so callers may pass non-canonical cells
    by_key = {cell.key: count for cell, count in counts.items()}

    lines: List[str] = []
    for row in range(center.row + radius, center.row - radius - 1, -1):
        row_chars: List[str] = []
        for col in range(center.col - radius, center.col + radius + 1):
            if (row, col) == center.key:
                row_chars.append(mapping["player"])
            elif (row, col) in by_key:
                glyph = "cache" if by_key[(row, col)] > 0 else "empty_cache"
                row_chars.append(mapping[glyph])
            else:
                row_chars.append(mapping["blank"])
        lines.append("".join(row_chars).rstrip())

    return "\n".join(lines)
