"""Deterministic luck oracle.

Every placement decision in the game (does this cell hold a cache, how many
coins does it start with) is a pure function of a string key, so the world
looks the same to every player and across restarts.

The default oracle seeds a private ``random.Random`` with the key. String
seeds are hashed with SHA-512 by ``random`` itself, which (unlike the builtin
``hash()``) is stable across processes.
"""

from __future__ import annotations

import random
from typing import Callable

Oracle = Callable[[str], float]

INITIAL_VALUE_SUFFIX = "initialValue"


def luck(key: str) -> float:
    """Return a float in [0, 1) determined entirely by ``key``."""
    return random.Random(key).random()


def oracle_key(*parts: object) -> str:
    """Join key parts with commas (``oracle_key(12, 7) == "12,7"``)."""
    return ",".join(str(part) for part in parts)


def spawn_key(row: int, col: int) -> str:
    """Key rolled to decide whether a cell holds a cache."""
    return oracle_key(row, col)


def initial_value_key(row: int, col: int) -> str:
    """Key rolled to decide a fresh cache's starting coin count."""
    return oracle_key(row, col, INITIAL_VALUE_SUFFIX)
