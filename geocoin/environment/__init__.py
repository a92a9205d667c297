"""Grid environment for Geocoin."""

from .grid import Cell, CellIndex
from .schemas import CellBounds, LatLng
from .helpers import (
    DIRECTIONS,
    chebyshev_distance,
    step_position,
    render_ascii_window,
)

__all__ = [
    "Cell",
    "CellIndex",
    "CellBounds",
    "LatLng",
    "DIRECTIONS",
    "chebyshev_distance",
    "step_position",
    "render_ascii_window",
]
