"""Tests for the cache ledger: lifecycle, transfers and coin conservation."""

import random

import pytest

from geocoin.inventory import EmptyInventoryError, PlayerInventory, TokenNotHeldError
from geocoin.ledger import (
    CacheLedger,
    CacheState,
    EmptyCacheError,
    Memento,
    NotMaterializedError,
)
from geocoin.tokens import Token


@pytest.fixture
def cell(index):
    return index.cell(12, 7)


@pytest.fixture
def ledger(scenario_oracle):
    return CacheLedger(scenario_oracle)


def test_grab_archive_materialize_donate_scenario(ledger, cell):
    inventory = PlayerInventory()

    handle = ledger.materialize(cell)
    assert handle.token_count == 42
    assert ledger.instantiated == 42

    for _ in range(5):
        ledger.grab(cell, inventory)
    assert len(inventory) == 5
    assert ledger.handle(cell).token_count == 37

    memento = ledger.archive(cell)
    assert memento == Memento(cell=cell, token_count=37)
    assert ledger.state_of(cell) is CacheState.ARCHIVED

    restored = ledger.materialize(cell)
    assert restored.token_count == 37  # not re-rolled to 42
    assert ledger.instantiated == 42

    ledger.donate(cell, inventory, inventory.tokens[0])
    assert ledger.handle(cell).token_count == 38
    assert len(inventory) == 4
    assert ledger.check_conservation(inventory)


def test_grab_hands_out_lowest_serial_first(ledger, cell):
    inventory = PlayerInventory()
    ledger.materialize(cell)

    serials = [ledger.grab(cell, inventory).serial for _ in range(3)]
    assert serials == [0, 1, 2]
    assert inventory.last_token.serial == 2
    assert all(token.location is None for token in inventory)


def test_donated_coin_is_handed_out_again_by_serial(ledger, cell):
    inventory = PlayerInventory()
    ledger.materialize(cell)
    first = ledger.grab(cell, inventory)

    ledger.donate(cell, inventory)
    assert first.location == cell
    assert ledger.grab(cell, inventory) == first


def test_grab_on_empty_cache_fails_and_leaves_state_unchanged(table_oracle, index):
    oracle = table_oracle({"1,1": 0.0, "1,1,initialValue": 0.001})
    ledger = CacheLedger(oracle)
    inventory = PlayerInventory()
    cell = index.cell(1, 1)

    assert ledger.materialize(cell).token_count == 0

    with pytest.raises(EmptyCacheError) as excinfo:
        ledger.grab(cell, inventory)

    assert excinfo.value.cell == cell
    assert ledger.handle(cell).token_count == 0
    assert len(inventory) == 0
    assert ledger.instantiated == 0


def test_transfers_require_materialized_cache(ledger, cell, index):
    inventory = PlayerInventory()

    with pytest.raises(NotMaterializedError):
        ledger.grab(cell, inventory)

    ledger.materialize(cell)
    token = ledger.grab(cell, inventory)
    ledger.archive(cell)

    with pytest.raises(NotMaterializedError) as excinfo:
        ledger.donate(cell, inventory, token)
    assert excinfo.value.operation == "donate"
    assert token in inventory

    with pytest.raises(NotMaterializedError):
        ledger.grab(index.cell(99, 99), inventory)


def test_donate_errors_leave_state_unchanged(ledger, cell, index):
    inventory = PlayerInventory()
    ledger.materialize(cell)

    with pytest.raises(EmptyInventoryError):
        ledger.donate(cell, inventory)
    assert ledger.handle(cell).token_count == 42

    stranger = Token(origin=index.cell(0, 0), serial=3)
    with pytest.raises(TokenNotHeldError):
        ledger.donate(cell, inventory, stranger)
    assert ledger.handle(cell).token_count == 42


def test_materialize_is_idempotent(ledger, cell):
    first = ledger.materialize(cell)
    second = ledger.materialize(cell)

    assert first is second
    assert second.token_count == 42
    assert ledger.instantiated == 42
    assert len(ledger.tokens_at(cell)) == 42


def test_archive_is_noop_for_unseen_and_archived_cells(ledger, cell, index):
    assert ledger.archive(index.cell(5, 5)) is None
    assert ledger.state_of(index.cell(5, 5)) is CacheState.UNSEEN

    ledger.materialize(cell)
    assert ledger.archive(cell) is not None
    assert ledger.archive(cell) is None
    assert ledger.mementos() == [Memento(cell=cell, token_count=42)]


def test_memento_is_overwritten_in_place(ledger, cell):
    inventory = PlayerInventory()
    ledger.materialize(cell)
    ledger.archive(cell)

    ledger.materialize(cell)
    ledger.grab(cell, inventory)
    ledger.archive(cell)

    assert ledger.mementos() == [Memento(cell=cell, token_count=41)]


def test_archived_coins_keep_their_location(ledger, cell):
    inventory = PlayerInventory()
    ledger.materialize(cell)
    ledger.grab(cell, inventory)
    ledger.archive(cell)

    assert len(ledger.tokens_at(cell)) == 41
    assert all(token.location == cell for token in ledger.tokens_at(cell))
    assert ledger.materialize(cell).token_count == 41
    # The next coin handed out continues the serial order
    assert ledger.grab(cell, inventory).serial == 1


def test_export_mementos_snapshots_materialized_caches(ledger, cell):
    inventory = PlayerInventory()
    ledger.materialize(cell)
    ledger.grab(cell, inventory)

    assert ledger.mementos() == []
    assert ledger.export_mementos() == [Memento(cell=cell, token_count=41)]
    # Exporting does not archive anything
    assert ledger.state_of(cell) is CacheState.MATERIALIZED


def test_conservation_holds_across_random_operations(table_oracle, index):
    oracle = table_oracle(
        {
            "0,0,initialValue": 0.035,
            "0,1,initialValue": 0.075,
            "1,0,initialValue": 0.001,
        }
    )
    ledger = CacheLedger(oracle)
    inventory = PlayerInventory()
    cells = [index.cell(0, 0), index.cell(0, 1), index.cell(1, 0)]
    rng = random.Random(7)

    for _ in range(300):
        cell = rng.choice(cells)
        operation = rng.choice(["grab", "donate", "materialize", "archive"])
        try:
            if operation == "grab":
                ledger.grab(cell, inventory)
            elif operation == "donate":
                ledger.donate(cell, inventory)
            elif operation == "materialize":
                ledger.materialize(cell)
            else:
                ledger.archive(cell)
        except (EmptyCacheError, NotMaterializedError, EmptyInventoryError):
            pass
        assert ledger.check_conservation(inventory)

    for cell in cells:
        ledger.materialize(cell)
    assert sum(ledger.counts().values()) + len(inventory) == ledger.instantiated
    assert ledger.instantiated == 3 + 7 + 0


def test_restore_rebuilds_archived_caches(index):
    ledger = CacheLedger(lambda key: 0.99)
    cell = index.cell(4, 4)
    coins = [Token(origin=cell, serial=n, location=cell) for n in range(3)]
    held = [Token(origin=cell, serial=3, location=cell)]

    accepted = ledger.restore([Memento(cell=cell, token_count=3)], coins, held)

    assert accepted == held
    assert held[0].location is None
    assert ledger.state_of(cell) is CacheState.ARCHIVED
    assert ledger.materialize(cell).token_count == 3
    assert ledger.instantiated == 4

    inventory = PlayerInventory(accepted)
    assert ledger.check_conservation(inventory)


def test_restore_reconciles_memento_counts_with_saved_coins(index):
    ledger = CacheLedger(lambda key: 0.99)
    short = index.cell(1, 1)
    long = index.cell(2, 2)
    coins = [Token(origin=short, serial=n, location=short) for n in range(5)]
    coins += [Token(origin=long, serial=0, location=long)]

    ledger.restore(
        [Memento(cell=short, token_count=2), Memento(cell=long, token_count=4)],
        coins,
    )

    # Saved coins win over a stale low count; missing coins are minted
    assert ledger.materialize(short).token_count == 5
    assert ledger.materialize(long).token_count == 4
    assert [t.serial for t in ledger.tokens_at(long)] == [0, 1, 2, 3]
    assert ledger.instantiated == 9
    assert ledger.check_conservation(PlayerInventory())


def test_restore_drops_duplicate_coins(index):
    ledger = CacheLedger(lambda key: 0.99)
    cell = index.cell(0, 0)
    coin = Token(origin=cell, serial=0, location=cell)

    accepted = ledger.restore(
        [Memento(cell=cell, token_count=1)],
        [coin, Token(origin=cell, serial=0, location=cell)],
        [Token(origin=cell, serial=0)],
    )

    assert accepted == []
    assert ledger.instantiated == 1


def test_materialize_adopts_saved_coins_without_memento(index):
    ledger = CacheLedger(lambda key: 0.0)  # would roll zero coins
    cell = index.cell(6, 6)
    coins = [Token(origin=cell, serial=n, location=cell) for n in range(2)]

    ledger.restore([], coins)

    assert ledger.state_of(cell) is CacheState.UNSEEN
    assert ledger.check_conservation(PlayerInventory())
    assert ledger.materialize(cell).token_count == 2
    assert ledger.instantiated == 2


def test_reset_forgets_everything(ledger, cell):
    ledger.materialize(cell)
    ledger.reset()

    assert ledger.state_of(cell) is CacheState.UNSEEN
    assert ledger.instantiated == 0
    assert ledger.active_tokens() == []


def test_conservation_counts_coins_restored_without_memento(index):
    ledger = CacheLedger(lambda key: 0.99)
    cell = index.cell(30, 30)
    coins = [Token(origin=cell, serial=n, location=cell) for n in range(9)]

    ledger.restore([], coins)

    assert ledger.instantiated == 9
    assert ledger.check_conservation(PlayerInventory())

    inventory = PlayerInventory()
    ledger.materialize(cell)
    ledger.grab(cell, inventory)
    ledger.archive(cell)
    assert ledger.check_conservation(inventory)
