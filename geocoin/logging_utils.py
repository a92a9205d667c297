"""Tagged, colour-coded console output for Geocoin.

Every line the package prints starts with a short tag saying what kind of
work produced it, so a transcript reads correctly without colour:

- ``[•]`` grid and ledger bookkeeping (pure, repeatable from the oracle)
- ``[io]`` reads and writes against the save store
- ``[!]`` failed saves, skipped save records, conservation repairs
- ``[✓]`` / ``[i]`` outcomes and session summaries

``GEOCOIN_NO_COLOR`` strips the ANSI codes (tests set it). Per-cache ledger
lines are noisy on a long walk, so they only appear with ``GEOCOIN_VERBOSE``.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI escape codes, one per tag."""

    BLUE = "\033[94m"      # [•]
    MAGENTA = "\033[95m"   # [io]
    RED = "\033[91m"       # [!]
    GREEN = "\033[92m"     # [✓]
    CYAN = "\033[96m"      # [i] and the status line

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap ``text`` in ``color`` unless GEOCOIN_NO_COLOR is set."""
    if os.getenv("GEOCOIN_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def is_verbose() -> bool:
    return os.getenv("GEOCOIN_VERBOSE", "").lower() in {"1", "true", "yes"}


LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_STORAGE = "[io]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


def log_deterministic(message: str) -> None:
    """Index, ledger or refresh step, e.g. ``[Session] Player at 12:7: ...``."""
    print(colored(f"{LOG_TAG_DETERMINISTIC} {message}", Color.BLUE))


def log_storage(message: str) -> None:
    """Store access, e.g. restoring a saved game."""
    print(colored(f"{LOG_TAG_STORAGE} {message}", Color.MAGENTA))


def log_error(message: str) -> None:
    """Something was dropped or could not be persisted; the game carries on."""
    print(colored(f"{LOG_TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    print(colored(f"{LOG_TAG_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    print(colored(f"{LOG_TAG_INFO} {message}", Color.CYAN))
