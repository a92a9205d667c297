"""
Geocoin Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Grid geometry. One tile is roughly the size of a house at this latitude.
    TILE_DEGREES: float = float(os.getenv("GEOCOIN_TILE_DEGREES", "1e-4"))
    # Neighborhood radius in tiles (inclusive, so the window is 2r+1 wide)
    PLAYER_VISION: int = int(os.getenv("GEOCOIN_PLAYER_VISION", "8"))
    CACHE_SPAWN_PROBABILITY: float = float(os.getenv("GEOCOIN_SPAWN_PROBABILITY", "0.1"))

    # Where a fresh game starts (Oakes College classroom)
    START_LAT: float = float(os.getenv("GEOCOIN_START_LAT", "36.98949379578401"))
    START_LNG: float = float(os.getenv("GEOCOIN_START_LNG", "-122.06277128548504"))

    # Storage
    SAVE_PATH: str = os.getenv("GEOCOIN_SAVE_PATH", "geocoin_save.json")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://localhost/geocoin")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if values are out of range."""
        if cls.TILE_DEGREES <= 0:
            raise ValueError(
                f"GEOCOIN_TILE_DEGREES must be positive (got {cls.TILE_DEGREES})"
            )

        if cls.PLAYER_VISION < 0:
            raise ValueError(
                f"GEOCOIN_PLAYER_VISION must be >= 0 (got {cls.PLAYER_VISION})"
            )

        if not 0.0 <= cls.CACHE_SPAWN_PROBABILITY <= 1.0:
            raise ValueError(
                "GEOCOIN_SPAWN_PROBABILITY must be between 0 and 1 "
                f"(got {cls.CACHE_SPAWN_PROBABILITY})"
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Geocoin Configuration:",
            f"  Tile Size: {cls.TILE_DEGREES}°",
            f"  Vision Radius: {cls.PLAYER_VISION} tiles",
            f"  Spawn Probability: {cls.CACHE_SPAWN_PROBABILITY}",
            f"  Start: ({cls.START_LAT:.6f}, {cls.START_LNG:.6f})",
            f"  Save File: {cls.SAVE_PATH}",
        ]
        return "\n".join(lines)
