"""
Geocoin - deterministic map-based coin collecting.

Caches are placed on a geographic grid by a deterministic oracle, hold
uniquely identified coins, and trade coins with the player's purse.

No rendering. No input handling. No global state.
Storage and game parameters are injected by the caller.
"""

__version__ = "0.1.0"

# Main session component
from .session import GameSession, RefreshReport

# Core components
from .environment import (
    Cell,
    CellIndex,
    CellBounds,
    LatLng,
    DIRECTIONS,
    chebyshev_distance,
    step_position,
    render_ascii_window,
)
from .ledger import (
    CacheLedger,
    CacheHandle,
    CacheState,
    Memento,
    EmptyCacheError,
    NotMaterializedError,
)
from .inventory import PlayerInventory, EmptyInventoryError, TokenNotHeldError
from .tokens import Token
from .oracle import Oracle, luck, oracle_key
from .codec import MalformedMementoError, MalformedTokenError
from .persistence import (
    KeyValueStore,
    InMemoryStore,
    JsonFileStore,
    PostgresStore,
    StorageUnavailableError,
)

# Wire schemas
from .schemas import MementoRecord, TokenRecord, CacheView, SaveSummary

__all__ = [
    # Main class
    "GameSession",
    "RefreshReport",
    # Grid
    "Cell",
    "CellIndex",
    "CellBounds",
    "LatLng",
    "DIRECTIONS",
    "chebyshev_distance",
    "step_position",
    "render_ascii_window",
    # Ledger
    "CacheLedger",
    "CacheHandle",
    "CacheState",
    "Memento",
    "PlayerInventory",
    "Token",
    # Oracle
    "Oracle",
    "luck",
    "oracle_key",
    # Storage
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "PostgresStore",
    # Schemas
    "MementoRecord",
    "TokenRecord",
    "CacheView",
    "SaveSummary",
    # Errors
    "EmptyCacheError",
    "NotMaterializedError",
    "EmptyInventoryError",
    "TokenNotHeldError",
    "MalformedMementoError",
    "MalformedTokenError",
    "StorageUnavailableError",
]
