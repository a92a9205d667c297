"""Shared fixtures: a table-driven oracle and the standard test grid."""

from typing import Callable, Dict

import pytest

from geocoin.environment import CellIndex, LatLng

TILE = 1e-4


def make_table_oracle(table: Dict[str, float], default: float = 0.99) -> Callable[[str], float]:
    """Oracle answering from ``table``; unknown keys get ``default`` (never spawns at p=0.1)."""

    def oracle(key: str) -> float:
        return table.get(key, default)

    return oracle


@pytest.fixture
def table_oracle():
    return make_table_oracle


@pytest.fixture
def scenario_oracle():
    # Cell (12, 7) holds a cache that starts with 42 coins; nothing else spawns.
    return make_table_oracle({"12,7": 0.05, "12,7,initialValue": 0.425})


@pytest.fixture
def index():
    return CellIndex(TILE)


@pytest.fixture
def scenario_start():
    # Centre of cell (12, 7)
    return LatLng(lat=12.5 * TILE, lng=7.5 * TILE)


@pytest.fixture(autouse=True)
def _plain_output(monkeypatch):
    monkeypatch.setenv("GEOCOIN_NO_COLOR", "1")
    monkeypatch.delenv("GEOCOIN_VERBOSE", raising=False)
