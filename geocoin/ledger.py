"""
Cache ledger: cache lifecycle, memento archive and the coin pool.

Every cache cell moves through ``UNSEEN -> MATERIALIZED -> ARCHIVED ->
MATERIALIZED -> ...`` as the player wanders in and out of range. The ledger
owns three pieces of state and nothing else:

- the handles of currently materialized caches (what the map shows),
- one memento per cache that has ever been archived (overwritten in place),
- the pool of every minted coin that is not in the player's purse, keyed by
  the cell it currently sits in.

Conservation: coins are minted once, the first time their origin cache
materializes, and afterwards only move between the pool and a
``PlayerInventory``. Archiving never touches the pool, so a cache that comes
back into range finds exactly the coins it had when it left.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .environment import Cell
from .inventory import PlayerInventory
from .logging_utils import is_verbose, log_deterministic, log_error
from .oracle import Oracle, initial_value_key, luck
from .tokens import Token

# Fresh caches start with floor(luck * MAX_INITIAL_COINS) coins
MAX_INITIAL_COINS = 100


# =============================
# Module-level Exceptions
# =============================

class EmptyCacheError(Exception):
    """Raised when a coin is grabbed from a cache that has none left.

    Non-fatal: the UI should simply disable the grab action for this cache.
    """

    def __init__(self, cell: Cell) -> None:
        self.cell = cell
        super().__init__(f"Cache {cell} is empty")


class NotMaterializedError(Exception):
    """Raised when grab/donate targets a cache that is archived or unseen.

    Indicates a sequencing bug in the caller, which should only offer actions
    on visible caches.
    """

    def __init__(self, cell: Cell, operation: str) -> None:
        self.cell = cell
        self.operation = operation
        super().__init__(f"Cannot {operation} at {cell}: cache is not materialized")


class CacheState(Enum):
    UNSEEN = "unseen"
    MATERIALIZED = "materialized"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class Memento:
    """Snapshot sufficient to rebuild an archived cache exactly."""

    cell: Cell
    token_count: int


@dataclass
class CacheHandle:
    """A materialized cache as seen by the session and the renderer."""

    cell: Cell
    token_count: int

    @property
    def is_empty(self) -> bool:
        return self.token_count == 0


class CacheLedger:
    """Owns caches, mementos and the coin pool; enforces coin conservation."""

    def __init__(self, oracle: Optional[Oracle] = None):
        self.oracle: Oracle = oracle or luck
        self._active: Dict[Cell, CacheHandle] = {}
        self._archive: Dict[Cell, Memento] = {}
        self._pool: Dict[Cell, List[Token]] = {}
        # Origin cell -> next unused serial. Presence means the origin has minted.
        self._next_serial: Dict[Cell, int] = {}
        self._instantiated = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def instantiated(self) -> int:
        """Number of coins minted over the ledger's lifetime."""
        return self._instantiated

    def state_of(self, cell: Cell) -> CacheState:
        if cell in self._active:
            return CacheState.MATERIALIZED
        if cell in self._archive:
            return CacheState.ARCHIVED
        return CacheState.UNSEEN

    def is_materialized(self, cell: Cell) -> bool:
        return cell in self._active

    def has_memento(self, cell: Cell) -> bool:
        return cell in self._archive

    def handle(self, cell: Cell) -> Optional[CacheHandle]:
        return self._active.get(cell)

    def materialized_cells(self) -> List[Cell]:
        return sorted(self._active, key=lambda c: c.key)

    def counts(self) -> Dict[Cell, int]:
        """Coin count of every materialized cache."""
        return {cell: self._active[cell].token_count for cell in self.materialized_cells()}

    def mementos(self) -> List[Memento]:
        """Mementos of caches that are currently archived."""
        return [
            self._archive[cell]
            for cell in sorted(self._archive, key=lambda c: c.key)
            if cell not in self._active
        ]

    def export_mementos(self) -> List[Memento]:
        """Mementos for every known cache, snapshotting materialized ones in place.

        This is what gets saved: a process restart archives everything, so
        caches that were on screen need a memento too.
        """
        snapshot: Dict[Cell, Memento] = {
            cell: memento for cell, memento in self._archive.items()
        }
        for cell, handle in self._active.items():
            snapshot[cell] = Memento(cell=cell, token_count=handle.token_count)
        return [snapshot[cell] for cell in sorted(snapshot, key=lambda c: c.key)]

    def holds_coins(self, cell: Cell) -> bool:
        return bool(self._pool.get(cell))

    def tokens_at(self, cell: Cell) -> List[Token]:
        return sorted(self._pool.get(cell, []), key=lambda t: t.selection_key)

    def active_tokens(self) -> List[Token]:
        """Every minted coin not held by the player, grouped by location."""
        tokens: List[Token] = []
        for cell in sorted(self._pool, key=lambda c: c.key):
            tokens.extend(self.tokens_at(cell))
        return tokens

    def roll_initial_count(self, cell: Cell) -> int:
        roll = self.oracle(initial_value_key(cell.row, cell.col))
        return math.floor(roll * MAX_INITIAL_COINS)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def materialize(self, cell: Cell) -> CacheHandle:
        """Bring a cache into active simulation.

        Order of precedence: an existing handle is returned untouched; a
        memento restores its count exactly; coins already minted for the cell
        (restored from storage without a usable memento) are adopted as-is;
        only a never-seen cell rolls and mints fresh coins.
        """
        handle = self._active.get(cell)
        if handle is not None:
            return handle

        memento = self._archive.get(cell)
        if memento is not None:
            count = memento.token_count
            source = "memento"
        elif cell in self._next_serial or cell in self._pool:
            count = len(self._pool.get(cell, []))
            source = "existing coins"
        else:
            count = self.roll_initial_count(cell)
            self._mint(cell, count)
            source = "fresh roll"

        handle = CacheHandle(cell=cell, token_count=count)
        self._active[cell] = handle
        if is_verbose():
            log_deterministic(f"[Ledger] Materialized {cell} with {count} coins ({source})")
        return handle

    def archive(self, cell: Cell) -> Optional[Memento]:
        """Take a cache out of active simulation, recording its memento.

        Returns the written memento, or ``None`` if the cache was not
        materialized (archived and unseen caches are left alone).
        """
        handle = self._active.pop(cell, None)
        if handle is None:
            return None

        memento = Memento(cell=cell, token_count=handle.token_count)
        self._archive[cell] = memento
        if is_verbose():
            log_deterministic(f"[Ledger] Archived {cell} with {memento.token_count} coins")
        return memento

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def grab(self, cell: Cell, inventory: PlayerInventory) -> Token:
        """Move the lowest-serial coin at ``cell`` into ``inventory``.

        Raises:
            NotMaterializedError: If the cache is archived or unseen
            EmptyCacheError: If the cache holds no coins (nothing changes)
        """
        handle = self._require_materialized(cell, "grab")
        tokens = self._pool.get(cell)
        if handle.token_count == 0 or not tokens:
            raise EmptyCacheError(cell)

        token = min(tokens, key=lambda t: t.selection_key)
        tokens.remove(token)
        if not tokens:
            del self._pool[cell]
        inventory.add(token)
        handle.token_count -= 1
        return token

    def donate(
        self,
        cell: Cell,
        inventory: PlayerInventory,
        token: Optional[Token] = None,
    ) -> Token:
        """Move ``token`` (default: the oldest held coin) from ``inventory`` into ``cell``.

        Raises:
            NotMaterializedError: If the cache is archived or unseen
            EmptyInventoryError: If no token is given and the purse is empty
            TokenNotHeldError: If ``token`` is not in the purse
        """
        handle = self._require_materialized(cell, "donate")
        token = inventory.take(token)
        token.location = cell
        self._pool.setdefault(cell, []).append(token)
        handle.token_count += 1
        return token

    # ------------------------------------------------------------------
    # Restore / reset
    # ------------------------------------------------------------------

    def restore(
        self,
        mementos: Iterable[Memento],
        tokens: Iterable[Token],
        held: Iterable[Token] = (),
    ) -> List[Token]:
        """Rebuild the ledger from records loaded out of storage.

        Everything restored starts out archived. Coins are authoritative: a
        memento claiming fewer coins than sit at its cell is raised to match,
        and one claiming more is topped up with newly minted coins, so the
        conservation law holds from the first operation onwards.

        Args:
            mementos: Archived caches
            tokens: Coins located in caches (``location`` set)
            held: Coins in the player's purse

        Returns:
            The held coins that were accepted (duplicates dropped), in order
        """
        self.reset()
        seen: Set[Tuple[int, int, int]] = set()

        for token in tokens:
            if token.location is None or token.identity in seen:
                log_error(f"[Ledger] Dropping duplicate or unplaced coin {token}")
                continue
            seen.add(token.identity)
            self._pool.setdefault(token.location, []).append(token)
            self._note_minted(token)

        accepted: List[Token] = []
        for token in held:
            if token.identity in seen:
                log_error(f"[Ledger] Dropping duplicate held coin {token}")
                continue
            seen.add(token.identity)
            token.location = None
            accepted.append(token)
            self._note_minted(token)

        for memento in mementos:
            present = len(self._pool.get(memento.cell, []))
            count = memento.token_count
            if count > present:
                log_error(
                    f"[Ledger] Cache {memento.cell} lists {count} coins but only {present} "
                    f"were saved; minting {count - present}"
                )
                self._mint(memento.cell, count - present)
            elif count < present:
                log_error(
                    f"[Ledger] Cache {memento.cell} lists {count} coins but {present} "
                    "were saved; keeping the saved coins"
                )
                count = present
            self._archive[memento.cell] = Memento(cell=memento.cell, token_count=count)

        return accepted

    def reset(self) -> None:
        self._active.clear()
        self._archive.clear()
        self._pool.clear()
        self._next_serial.clear()
        self._instantiated = 0

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_conservation(self, inventory: PlayerInventory) -> bool:
        """Return True if every minted coin is accounted for exactly once.

        Materialized counts must match the coins sitting in each cache, and
        materialized + archived + carried must equal the number minted.
        Coins restored at a cell with no memento count as they lie until
        that cell is materialized again.
        """
        for cell, handle in self._active.items():
            if handle.token_count != len(self._pool.get(cell, [])):
                return False

        in_caches = sum(h.token_count for h in self._active.values())
        in_archive = sum(m.token_count for m in self.mementos())
        unclaimed = sum(
            len(tokens)
            for cell, tokens in self._pool.items()
            if cell not in self._active and cell not in self._archive
        )
        total = in_caches + in_archive + unclaimed + len(inventory)
        return total == self._instantiated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_materialized(self, cell: Cell, operation: str) -> CacheHandle:
        handle = self._active.get(cell)
        if handle is None:
            raise NotMaterializedError(cell, operation)
        return handle

    def _mint(self, cell: Cell, count: int) -> List[Token]:
        start = self._next_serial.get(cell, 0)
        minted = [Token(origin=cell, serial=start + n, location=cell) for n in range(count)]
        self._pool.setdefault(cell, []).extend(minted)
        if not self._pool[cell]:
            del self._pool[cell]
        self._next_serial[cell] = start + count
        self._instantiated += count
        return minted

    def _note_minted(self, token: Token) -> None:
        current = self._next_serial.get(token.origin, 0)
        self._next_serial[token.origin] = max(current, token.serial + 1)
        self._instantiated += 1
