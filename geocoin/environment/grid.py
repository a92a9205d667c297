"""Spatial grid indexing.

The world is cut into square tiles ``tile_degrees`` wide. ``CellIndex`` turns a
continuous (lat, lng) into the canonical ``Cell`` for that tile and lists the
cells around a point. Cells are flyweights: the index hands out exactly one
``Cell`` object per (row, col), so identity and equality agree everywhere
downstream (ledger dict keys, membership tests against a neighborhood).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .schemas import CellBounds, LatLng


@dataclass(frozen=True)
class Cell:
    """A grid square identified by integer ``(row, col)``.

    ``row`` follows latitude (grows northwards), ``col`` follows longitude
    (grows eastwards).
    """

    row: int
    col: int

    @property
    def key(self) -> Tuple[int, int]:
        return (self.row, self.col)

    def __str__(self) -> str:
        return f"{self.row}:{self.col}"


class CellIndex:
    """Flyweight registry of cells plus the geometry that relates them to points.

    The registry only ever grows. Cells are tiny and the set a player can
    visit in a session is bounded by how far they walk.
    """

    def __init__(self, tile_degrees: float):
        if tile_degrees <= 0:
            raise ValueError(f"tile_degrees must be positive (got {tile_degrees})")
        self.tile_degrees = tile_degrees
        self._cells: Dict[Tuple[int, int], Cell] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: Tuple[int, int]) -> bool:
        return key in self._cells

    def cell(self, row: int, col: int) -> Cell:
        """Return the canonical cell for ``(row, col)``, registering it on first use."""
        key = (int(row), int(col))
        existing = self._cells.get(key)
        if existing is None:
            existing = Cell(*key)
            self._cells[key] = existing
        return existing

    def cell_for_point(self, point: LatLng) -> Cell:
        row = math.floor(point.lat / self.tile_degrees)
        col = math.floor(point.lng / self.tile_degrees)
        return self.cell(row, col)

    def bounds_of(self, cell: Cell) -> CellBounds:
        size = self.tile_degrees
        return CellBounds(
            south=cell.row * size,
            west=cell.col * size,
            north=(cell.row + 1) * size,
            east=(cell.col + 1) * size,
        )

    def center_of(self, cell: Cell) -> LatLng:
        size = self.tile_degrees
        return LatLng(lat=(cell.row + 0.5) * size, lng=(cell.col + 0.5) * size)

    def neighborhood(self, point: LatLng, radius: int) -> List[Cell]:
        """Cells within Chebyshev distance ``radius`` of the cell containing ``point``.

        The radius is inclusive: ``radius=r`` yields a ``(2r+1) x (2r+1)``
        square. Cells come back in row-major order (south to north, west to
        east within a row).
        """
        radius = max(int(radius), 0)
        origin = self.cell_for_point(point)
        return [
            self.cell(row, col)
            for row in range(origin.row - radius, origin.row + radius + 1)
            for col in range(origin.col - radius, origin.col + radius + 1)
        ]
