"""Coin tokens.

A token is minted exactly once, when the cache at its origin cell first
materializes, and then only ever changes location.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .environment import Cell


@dataclass(unsafe_hash=True)
class Token:
    """A uniquely identified coin.

    Identity is ``(origin, serial)``. ``location`` is the cache cell currently
    holding the token, or ``None`` while the player carries it; it takes no
    part in equality or hashing.
    """

    origin: Cell
    serial: int
    location: Optional[Cell] = field(default=None, compare=False)

    @property
    def identity(self) -> Tuple[int, int, int]:
        return (self.origin.row, self.origin.col, self.serial)

    @property
    def selection_key(self) -> Tuple[int, int, int]:
        """Ordering used when a cache hands out a coin: lowest serial first."""
        return (self.serial, self.origin.row, self.origin.col)

    @property
    def in_inventory(self) -> bool:
        return self.location is None

    def __str__(self) -> str:
        return f"{self.origin}#{self.serial}"
