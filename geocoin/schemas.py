"""
Pydantic schemas for Geocoin save data.

Runtime state lives in plain dataclasses (``Token``, ``Memento``, ``Cell``).
The models here describe what those records look like once they cross into
the durable store, and nothing else.

Design Philosophy:
- Field names on the wire stay compatible with the original browser save
  format (``i``/``j``/``numCoins``/``currentI``/``currentJ``)
- Python-side names are descriptive; aliases handle the translation
- Lax pydantic validation coerces numeric strings, which old saves contain
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from geocoin.environment import CellBounds, LatLng


# ============================================================================
# Store keys
# ============================================================================

PLAYER_KEY = "player"
CACHES_KEY = "caches"
COINS_KEY = "coins"
PLAYER_LOCATION_KEY = "playerLoc"
TRAIL_KEY = "trail"

SAVE_KEYS = (PLAYER_KEY, CACHES_KEY, COINS_KEY, PLAYER_LOCATION_KEY, TRAIL_KEY)


# ============================================================================
# Record Schemas
# ============================================================================


class MementoRecord(BaseModel):
    """Wire form of a cache memento: ``{"i": row, "j": col, "numCoins": count}``.

    All three fields are mandatory. A missing or non-numeric field makes the
    record unusable and the loader skips it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    row: int = Field(..., alias="i", description="Cell row (latitude index)")
    col: int = Field(..., alias="j", description="Cell column (longitude index)")
    token_count: int = Field(..., alias="numCoins", ge=0, description="Coins in the cache")


class TokenRecord(BaseModel):
    """Wire form of a coin.

    ``i``/``j``/``serial`` identify the coin. ``currentI``/``currentJ`` locate
    it in a cache; both are null while the player carries it.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    row: int = Field(..., alias="i", description="Origin cell row")
    col: int = Field(..., alias="j", description="Origin cell column")
    serial: int = Field(..., ge=0, description="Serial, unique within the origin cell")
    current_row: Optional[int] = Field(None, alias="currentI", description="Row of the holding cache")
    current_col: Optional[int] = Field(None, alias="currentJ", description="Column of the holding cache")

    @model_validator(mode="after")
    def _location_is_complete(self) -> "TokenRecord":
        if (self.current_row is None) != (self.current_col is None):
            raise ValueError("currentI and currentJ must both be set or both be null")
        return self

    @property
    def in_inventory(self) -> bool:
        return self.current_row is None


# ============================================================================
# Renderer Schemas
# ============================================================================


class CacheView(BaseModel):
    """A materialized cache as handed to a renderer: where to draw it and its label."""

    row: int = Field(..., description="Cell row")
    col: int = Field(..., description="Cell column")
    token_count: int = Field(..., ge=0, description="Coins currently in the cache")
    bounds: CellBounds = Field(..., description="Rectangle to draw")


class SaveSummary(BaseModel):
    """What a session restore found in the store (for status display and tests)."""

    held_tokens: int = Field(0, ge=0, description="Coins restored into the purse")
    mementos: int = Field(0, ge=0, description="Cache mementos restored")
    active_tokens: int = Field(0, ge=0, description="Coins restored into caches")
    skipped_records: int = Field(0, ge=0, description="Malformed records ignored")
    position: Optional[LatLng] = Field(None, description="Restored player location")
