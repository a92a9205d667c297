"""Tests for logging tags ([•] vs [io] vs [!]) in session output.

These tests assert that:
- Movement prints a [•] line, since refreshing the neighborhood is pure bookkeeping
- Restoring a save prints an [io] line and skipped records print [!]
- Per-cache ledger lines only appear with GEOCOIN_VERBOSE set
- Colors can be switched off with GEOCOIN_NO_COLOR
"""

from __future__ import annotations

import contextlib
import io
import json

import pytest

from geocoin.ledger import CacheLedger
from geocoin.logging_utils import (
    Color,
    colored,
    log_deterministic,
    log_error,
    log_info,
    log_storage,
    log_success,
)
from geocoin.persistence import InMemoryStore, StorageUnavailableError
from geocoin.session import GameSession


def _session(oracle, start, store=None) -> GameSession:
    return GameSession(
        store,
        oracle=oracle,
        tile_degrees=1e-4,
        vision_radius=1,
        spawn_probability=0.1,
        start_position=start,
    )


@pytest.mark.asyncio
async def test_move_tag_deterministic(scenario_oracle, scenario_start):
    session = _session(scenario_oracle, scenario_start)
    await session.start()

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await session.move("north")
    out = buf.getvalue()

    assert "[•] [Session] Player at 13:7: 0 archived, 0 materialized" in out.splitlines()
    assert "[io]" not in out


@pytest.mark.asyncio
async def test_restore_tags(scenario_oracle, scenario_start):
    store = InMemoryStore({"caches": json.dumps([{"i": 1, "j": 2}])})
    session = _session(scenario_oracle, scenario_start, store)

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await session.start()
    out = buf.getvalue()

    assert "[io] [Session] Restoring saved game..." in out
    assert "[!] [Codec] Skipping cache memento" in out


@pytest.mark.asyncio
async def test_fresh_start_does_not_claim_restore(scenario_oracle, scenario_start):
    session = _session(scenario_oracle, scenario_start)

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await session.start()

    assert "Restoring saved game" not in buf.getvalue()
    assert "[i] [Session] Started at 12:7" in buf.getvalue()


@pytest.mark.asyncio
async def test_save_failure_tag(scenario_oracle, scenario_start):
    class BrokenStore(InMemoryStore):
        async def set_many(self, items):
            raise StorageUnavailableError("write")

    session = _session(scenario_oracle, scenario_start, BrokenStore())
    await session.start()

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        await session.move("east")

    assert "[!] [Storage] Progress may not be saved" in buf.getvalue()


def test_ledger_lines_are_verbose_only(monkeypatch, scenario_oracle, index):
    cell = index.cell(12, 7)

    quiet = io.StringIO()
    with contextlib.redirect_stdout(quiet):
        ledger = CacheLedger(scenario_oracle)
        ledger.materialize(cell)
        ledger.archive(cell)
    assert quiet.getvalue() == ""

    monkeypatch.setenv("GEOCOIN_VERBOSE", "1")
    loud = io.StringIO()
    with contextlib.redirect_stdout(loud):
        ledger.materialize(cell)
        ledger.archive(cell)
    out = loud.getvalue()

    assert "[•] [Ledger] Materialized 12:7 with 42 coins (memento)" in out
    assert "[•] [Ledger] Archived 12:7 with 42 coins" in out


def test_colored_respects_no_color(monkeypatch):
    assert colored("hello", Color.GREEN) == "hello"

    monkeypatch.delenv("GEOCOIN_NO_COLOR")
    assert colored("hello", Color.GREEN) == "\033[92mhello\033[0m"
    assert colored("hello", Color.RED, bold=True) == "\033[1m\033[91mhello\033[0m"


def test_each_helper_prefixes_its_tag():
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        log_deterministic("a")
        log_storage("b")
        log_error("c")
        log_success("d")
        log_info("e")

    assert buf.getvalue().splitlines() == ["[•] a", "[io] b", "[!] c", "[✓] d", "[i] e"]
