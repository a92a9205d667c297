"""Stroll around the grid from the command line.

Loads (or starts) a saved game, walks a sequence of compass steps, and
prints the map window and status line after each step.

Usage:
    # Walk two tiles north, then one east
    python examples/stroll/run.py north north east

    # Grab one coin from every visible cache after each step
    python examples/stroll/run.py --grab east east

    # Use a separate save file, or start over
    python examples/stroll/run.py --save /tmp/walk.json --reset south

    # Keep the save in PostgreSQL instead (requires geocoin[postgres])
    python examples/stroll/run.py --postgres --namespace alice west
"""

import argparse
import asyncio
import sys

from geocoin import (
    EmptyCacheError,
    GameSession,
    JsonFileStore,
    PostgresStore,
)
from geocoin.config import Config
from geocoin.logging_utils import Color, colored, log_error, log_success


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Walk the coin grid and collect coins")
    parser.add_argument(
        "steps",
        nargs="*",
        help="Compass directions to walk, in order (north, south, east, west)",
    )
    parser.add_argument(
        "--save",
        default=Config.SAVE_PATH,
        help=f"JSON save file (default: {Config.SAVE_PATH})",
    )
    parser.add_argument(
        "--postgres",
        action="store_true",
        help="Store the game in PostgreSQL at DATABASE_URL instead of a JSON file",
    )
    parser.add_argument("--namespace", default="default", help="Save slot for --postgres")
    parser.add_argument(
        "--grab",
        action="store_true",
        help="Grab one coin from every visible non-empty cache after each step",
    )
    parser.add_argument("--reset", action="store_true", help="Discard the saved game first")
    parser.add_argument("--debug", action="store_true", help="Show tracebacks on failure")
    return parser.parse_args()


async def grab_everything(session: GameSession) -> int:
    grabbed = 0
    for view in session.visible_caches():
        cell = session.index.cell(view.row, view.col)
        if not session.can_grab(cell):
            continue
        try:
            await session.grab(cell)
            grabbed += 1
        except EmptyCacheError:
            continue
    return grabbed


def show(session: GameSession) -> None:
    print()
    print(session.render_map())
    print(colored(session.status_text(), Color.CYAN, bold=True))


async def stroll(args: argparse.Namespace) -> None:
    Config.validate()
    print(Config.display())

    if args.postgres:
        store = PostgresStore(Config.DATABASE_URL, namespace=args.namespace)
    else:
        store = JsonFileStore(args.save)

    session = GameSession(store)
    try:
        summary = await session.start()
        if summary.skipped_records:
            log_error(f"{summary.skipped_records} saved records could not be read")

        if args.reset:
            await session.reset()
            await session.save()

        show(session)
        for step in args.steps:
            await session.move(step)
            if args.grab:
                grabbed = await grab_everything(session)
                if grabbed:
                    log_success(f"Grabbed {grabbed} coins")
            show(session)
    finally:
        await session.close()

    if session.last_save_error is not None:
        log_error("The last save failed; progress since then is only in memory")


async def main():
    """Main entry point."""
    args = parse_args()

    try:
        await stroll(args)
    except KeyboardInterrupt:
        print("\n\nStroll interrupted by user.")
    except Exception as e:
        print(f"\n\nError during stroll: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
