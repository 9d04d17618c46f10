# SPDX-License-Identifier: GPL-3.0-or-later
"""Command-line front end for the investigator gamebook."""

import argparse
import logging
import os
import sys
from typing import Callable, Dict, List, Sequence

from gamebook.config import load_game_config
from gamebook.errors import ContentLoadFailure
from gamebook.game import Game
from gamebook.lifecycle import LifecycleState
from gamebook.navigation import ChoiceOption
from gamebook.persistence import SQLiteSaveStore


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_DIR = os.path.join(os.path.dirname(__file__), "data")

HELP_TEXT = (
    "Enter a choice number, or: s = save, l = load, d = death, r = restart, q = quit"
)


class ConsoleRenderSink:
    """Render sink printing every display update to a text stream."""

    def __init__(self, write: Callable[[str], None] = print) -> None:
        self.write = write

    def show_heading(self, text: str) -> None:
        if text:
            self.write("")
            self.write(text)

    def show_description(self, text: str) -> None:
        self.write("")
        self.write(text)

    def set_choices(self, options: Sequence[ChoiceOption]) -> None:
        if not options:
            return
        self.write("")
        for idx, option in enumerate(options, 1):
            self.write(f"{idx}. {option.label}")

    def show_stat(self, name: str, value: object) -> None:
        if value is not None:
            self.write(f"  {name}: {value}")

    def show_date(self, text: str) -> None:
        self.write(f"  Date: {text}")

    def notify(self, channel: str, message: str, duration_ms: int) -> None:
        self.write(f"[{channel}] {message}")


def _parse_allocation(text: str) -> Dict[str, int]:
    """Parse ``"Spot Hidden=40, Library Use=30"`` into a skill mapping."""

    allocation: Dict[str, int] = {}
    for part in text.split(","):
        if not part.strip():
            continue
        skill, sep, points = part.partition("=")
        if not sep or not skill.strip():
            raise ValueError(f"Expected 'Skill=points', got {part.strip()!r}")
        allocation[skill.strip()] = int(points.strip())
    return allocation


def prompt_allocation(
    name: str,
    points: int,
    *,
    input_fn: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> Dict[str, int]:
    """Ask the player how to spend ``points`` skill points for ``name``."""

    write(f"{name} has {points} skill points to allocate.")
    while True:
        raw = input_fn("Allocate as 'Skill=points, ...' (blank to skip): ")
        try:
            allocation = _parse_allocation(raw)
        except ValueError as exc:
            write(f"Invalid allocation: {exc}")
            continue
        spent = sum(allocation.values())
        if any(value < 0 for value in allocation.values()) or spent > points:
            write(f"Allocation must use between 0 and {points} points.")
            continue
        return allocation


def run(
    game: Game,
    *,
    input_fn: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Read commands until the player quits or input runs out."""

    write(HELP_TEXT)
    while True:
        if game.state is LifecycleState.GAME_OVER:
            write("All investigators are dead. Enter r to restart or q to quit.")
        try:
            command = input_fn("> ").strip().lower()
        except EOFError:
            break
        if command in ("q", "quit"):
            break
        if command in ("s", "save"):
            game.save()
        elif command in ("l", "load"):
            game.load()
        elif command in ("d", "death"):
            game.signal_death()
        elif command in ("r", "restart"):
            game.restart()
        elif command.isdigit():
            if not game.choose(int(command) - 1):
                write("That choice is not available right now.")
        else:
            write(HELP_TEXT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play the investigator gamebook")
    parser.add_argument(
        "--content-dir",
        default=os.environ.get("GAMEBOOK_CONTENT_DIR", DEFAULT_CONTENT_DIR),
        help="Directory holding investigators, entries and location_tables files",
    )
    parser.add_argument("--config", default=None, help="Path to game_config.yaml")
    parser.add_argument(
        "--save-db", default=None, help="SQLite file used for save slots"
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    args = build_parser().parse_args(argv)
    config = load_game_config(args.config)
    sink = ConsoleRenderSink()
    try:
        game = Game.from_directory(
            args.content_dir,
            sink,
            config,
            store=SQLiteSaveStore(args.save_db),
            allocator=prompt_allocation,
        )
    except ContentLoadFailure as exc:
        logger.error("Could not load game content: %s", exc)
        return 1
    game.start()
    run(game)
    return 0


if __name__ == "__main__":
    sys.exit(main())
