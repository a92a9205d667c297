"""Pydantic schemas for geographic positions and cell bounds.

These models mirror the lightweight dataclasses in ``grid.py`` but remain
serializable, so the player location and the rectangles handed to a renderer
can cross the storage boundary unchanged.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LatLng(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="Latitude in degrees (north positive)")
    lng: float = Field(..., description="Longitude in degrees (east positive)")

    def shifted(self, d_lat: float = 0.0, d_lng: float = 0.0) -> "LatLng":
        return LatLng(lat=self.lat + d_lat, lng=self.lng + d_lng)


class CellBounds(BaseModel):
    """Half-open rectangle covered by one grid cell.

    South/west edges belong to the cell, north/east edges belong to the next
    cell over.
    """

    model_config = ConfigDict(frozen=True)

    south: float = Field(..., description="Inclusive lower latitude")
    west: float = Field(..., description="Inclusive lower longitude")
    north: float = Field(..., description="Exclusive upper latitude")
    east: float = Field(..., description="Exclusive upper longitude")

    def contains(self, point: LatLng) -> bool:
        return self.south <= point.lat < self.north and self.west <= point.lng < self.east

    def as_pairs(self) -> tuple[tuple[float, float], tuple[float, float]]:
        """Corner pairs in the ``[[south, west], [north, east]]`` order map widgets expect."""
        return ((self.south, self.west), (self.north, self.east))
