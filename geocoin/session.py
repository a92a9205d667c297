"""
Game session orchestrator.

Fully decoupled from rendering and input handling.
The store, oracle and game parameters are injected by the caller.

Coordinates each player move:
1. Update the player position (step or absolute relocation)
2. Compute the visible neighborhood via CellIndex
3. Archive caches that left the neighborhood, materialize those that entered
4. Persist inventory, caches, coins and position via the injected store
5. Notify move listeners (renderers, analytics)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from . import codec
from .config import Config
from .environment import Cell, CellIndex, LatLng, render_ascii_window, step_position
from .inventory import PlayerInventory
from .ledger import CacheLedger
from .logging_utils import log_deterministic, log_error, log_info, log_storage
from .oracle import Oracle, luck, spawn_key
from .persistence import InMemoryStore, KeyValueStore, StorageUnavailableError
from .schemas import (
    CACHES_KEY,
    COINS_KEY,
    PLAYER_KEY,
    PLAYER_LOCATION_KEY,
    SAVE_KEYS,
    TRAIL_KEY,
    CacheView,
    SaveSummary,
)
from .tokens import Token


@dataclass
class RefreshReport:
    """Caches that changed state during one neighborhood refresh."""

    archived: List[Cell] = field(default_factory=list)
    materialized: List[Cell] = field(default_factory=list)


MoveListener = Callable[[LatLng, LatLng, RefreshReport], None]


class GameSession:
    """
    One player's game.

    Owns the player inventory, position and movement trail; delegates every
    cache and coin mutation to its CacheLedger.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        oracle: Optional[Oracle] = None,
        tile_degrees: Optional[float] = None,
        vision_radius: Optional[int] = None,
        spawn_probability: Optional[float] = None,
        start_position: Optional[LatLng] = None,
        move_listeners: Optional[List[MoveListener]] = None,
    ):
        """Initialize a session with all dependencies injected.

        Args:
            store: Optional durable store (defaults to InMemoryStore)
            oracle: Optional luck function ``str -> [0, 1)`` (defaults to ``luck``)
            tile_degrees: Grid tile size; defaults to Config.TILE_DEGREES
            vision_radius: Neighborhood radius in tiles; defaults to Config.PLAYER_VISION
            spawn_probability: Chance a cell holds a cache; defaults to
                Config.CACHE_SPAWN_PROBABILITY
            start_position: Where a fresh game begins; defaults to Config.START_LAT/LNG
            move_listeners: Optional callables invoked after each move with
                (previous_position, new_position, refresh_report).
        """
        self.store = store or InMemoryStore()
        self.oracle: Oracle = oracle or luck
        self.tile_degrees = tile_degrees if tile_degrees is not None else Config.TILE_DEGREES
        self.vision_radius = vision_radius if vision_radius is not None else Config.PLAYER_VISION
        self.spawn_probability = (
            spawn_probability if spawn_probability is not None else Config.CACHE_SPAWN_PROBABILITY
        )
        self.start_position = start_position or LatLng(lat=Config.START_LAT, lng=Config.START_LNG)

        self.index = CellIndex(self.tile_degrees)
        self.ledger = CacheLedger(self.oracle)
        self.inventory = PlayerInventory()
        self.position = self.start_position
        self.trail: List[LatLng] = [self.position]
        self.move_listeners = move_listeners or []

        # Set when the most recent save failed; cleared by the next good save
        self.last_save_error: Optional[StorageUnavailableError] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> SaveSummary:
        """Open the store, restore any saved game and populate the neighborhood."""
        await self.store.initialize()
        summary = await self._restore()
        self.refresh()
        log_info(
            f"[Session] Started at {self.player_cell}: {len(self.inventory)} coins held, "
            f"{len(self.ledger.materialized_cells())} caches in view"
        )
        return summary

    async def close(self) -> None:
        await self.store.close()

    async def reset(self) -> RefreshReport:
        """Forget all progress, in memory and in the store, and start over."""
        try:
            await self.store.clear()
        except StorageUnavailableError as exc:
            self.last_save_error = exc
            log_error(f"[Storage] Could not clear saved game: {exc}")

        self.ledger.reset()
        self.inventory.clear()
        self.position = self.start_position
        self.trail = [self.position]
        return self.refresh()

    # ------------------------------------------------------------------
    # Neighborhood
    # ------------------------------------------------------------------

    @property
    def player_cell(self) -> Cell:
        return self.index.cell_for_point(self.position)

    def neighborhood(self) -> List[Cell]:
        return self.index.neighborhood(self.position, self.vision_radius)

    def should_spawn(self, cell: Cell) -> bool:
        return self.oracle(spawn_key(cell.row, cell.col)) < self.spawn_probability

    def refresh(self) -> RefreshReport:
        """Archive caches out of range, then materialize caches in range."""
        visible = self.neighborhood()
        in_range = set(visible)
        report = RefreshReport()

        for cell in self.ledger.materialized_cells():
            if cell not in in_range:
                self.ledger.archive(cell)
                report.archived.append(cell)

        for cell in visible:
            if self.ledger.is_materialized(cell):
                continue
            # Saved coins keep a cache alive even if its memento was lost
            if (
                self.ledger.has_memento(cell)
                or self.ledger.holds_coins(cell)
                or self.should_spawn(cell)
            ):
                self.ledger.materialize(cell)
                report.materialized.append(cell)

        return report

    # ------------------------------------------------------------------
    # Movement
    # ------------------------------------------------------------------

    async def move(self, direction: str) -> RefreshReport:
        """Step one tile north, south, east or west.

        Raises:
            ValueError: If ``direction`` is not a compass direction (nothing changes)
        """
        previous = self.position
        self.position = step_position(previous, direction, self.tile_degrees)
        return await self._after_move(previous)

    async def relocate(self, point: LatLng) -> RefreshReport:
        """Jump to an absolute position, e.g. a geolocation fix."""
        previous = self.position
        self.position = point
        return await self._after_move(previous)

    async def _after_move(self, previous: LatLng) -> RefreshReport:
        self.trail.append(self.position)
        report = self.refresh()
        log_deterministic(
            f"[Session] Player at {self.player_cell}: "
            f"{len(report.archived)} archived, {len(report.materialized)} materialized"
        )
        await self.save()

        # Listener failures are logged but don't stop the game
        for listener in self.move_listeners:
            try:
                listener(previous, self.position, report)
            except Exception as exc:  # pragma: no cover - diagnostic hook
                log_error(f"[Session] Move listener failed: {exc}")
        return report

    # ------------------------------------------------------------------
    # Coin transfers
    # ------------------------------------------------------------------

    async def grab(self, cell: Cell) -> Token:
        """Take one coin from the cache at ``cell``.

        Raises:
            NotMaterializedError: If the cache is not visible
            EmptyCacheError: If the cache has no coins
        """
        token = self.ledger.grab(self._canonical(cell), self.inventory)
        await self.save()
        return token

    async def donate(self, cell: Cell, token: Optional[Token] = None) -> Token:
        """Leave a coin (default: the oldest held) in the cache at ``cell``.

        Raises:
            NotMaterializedError: If the cache is not visible
            EmptyInventoryError: If the player holds no coins
            TokenNotHeldError: If ``token`` is not held
        """
        token = self.ledger.donate(self._canonical(cell), self.inventory, token)
        await self.save()
        return token

    def can_grab(self, cell: Cell) -> bool:
        handle = self.ledger.handle(self._canonical(cell))
        return handle is not None and not handle.is_empty

    def can_donate(self, cell: Cell) -> bool:
        return self.ledger.is_materialized(self._canonical(cell)) and bool(self.inventory)

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------

    def visible_caches(self) -> List[CacheView]:
        return [
            CacheView(
                row=cell.row,
                col=cell.col,
                token_count=count,
                bounds=self.index.bounds_of(cell),
            )
            for cell, count in self.ledger.counts().items()
        ]

    def status_text(self) -> str:
        held = len(self.inventory)
        last = self.inventory.last_token
        if last is None:
            return f"{held} coins collected." if held else "No coins yet..."
        corner = self.index.bounds_of(last.origin)
        return (
            f"{held} coins collected. Last coin: "
            f"({corner.south:.4f}, {corner.west:.4f}) #{last.serial}"
        )

    def render_map(self, radius: Optional[int] = None) -> str:
        return render_ascii_window(
            self.player_cell,
            self.ledger.counts(),
            radius=self.vision_radius if radius is None else radius,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> bool:
        """Write the whole game to the store.

        Returns False (and records ``last_save_error``) if the store is
        unavailable. The in-memory game carries on regardless.
        """
        payload = {
            PLAYER_KEY: codec.dumps([codec.encode_token(t) for t in self.inventory]),
            CACHES_KEY: codec.dumps([codec.encode_memento(m) for m in self.ledger.export_mementos()]),
            COINS_KEY: codec.dumps([codec.encode_token(t) for t in self.ledger.active_tokens()]),
            PLAYER_LOCATION_KEY: codec.dumps(codec.encode_position(self.position)),
            TRAIL_KEY: codec.dumps([codec.encode_position(p) for p in self.trail]),
        }
        try:
            await self.store.set_many(payload)
        except StorageUnavailableError as exc:
            self.last_save_error = exc
            log_error(f"[Storage] Progress may not be saved: {exc}")
            return False

        self.last_save_error = None
        return True

    async def _restore(self) -> SaveSummary:
        raw: Dict[str, Any] = {}
        try:
            for key in SAVE_KEYS:
                raw[key] = codec.loads(await self.store.get(key))
        except StorageUnavailableError as exc:
            self.last_save_error = exc
            log_error(f"[Storage] Could not read saved game, starting fresh: {exc}")
            raw = {}

        if not any(value is not None for value in raw.values()):
            return SaveSummary()

        log_storage("[Session] Restoring saved game...")
        held, skipped_held = codec.decode_token_list(raw.get(PLAYER_KEY) or [], self.index)
        mementos, skipped_caches = codec.decode_memento_list(raw.get(CACHES_KEY) or [], self.index)
        active, skipped_coins = codec.decode_token_list(raw.get(COINS_KEY) or [], self.index)

        accepted = self.ledger.restore(mementos, active, held)
        self.inventory = PlayerInventory(accepted)

        position = None
        if raw.get(PLAYER_LOCATION_KEY) is not None:
            position = codec.decode_position(raw[PLAYER_LOCATION_KEY])
        if position is not None:
            self.position = position
        self.trail = codec.decode_position_list(raw.get(TRAIL_KEY)) or [self.position]

        return SaveSummary(
            held_tokens=len(accepted),
            mementos=len(mementos),
            active_tokens=len(active),
            skipped_records=skipped_held + skipped_caches + skipped_coins,
            position=position,
        )

    def _canonical(self, cell: Cell) -> Cell:
        return self.index.cell(cell.row, cell.col)
