from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .app import run_headless, status_line
from .config import Variant, load_game_config
from .engine import SimulationEngine
from .exceptions import ConfigError
from .logging_config import configure_logging
from .persistence import JsonFileStore, PersistenceAdapter, default_data_dir


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="incremental-faith",
        description="Incremental Faith - headless idle game runner",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding game constants")
    parser.add_argument(
        "--variant",
        choices=[v.value for v in Variant],
        default=None,
        help="Gameplay variant (default: from config file, else upgrade)",
    )
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding save data")

    sub = parser.add_subparsers(dest="command")
    run = sub.add_parser("run", help="Run the game loop")
    run.add_argument("--max-ticks", type=int, default=None, help="Stop after N ticks (for testing)")
    run.add_argument("--auto-buy", action="store_true", help="Buy faith upgrades whenever affordable")
    run.add_argument("--clicks-per-second", type=float, default=0.0, help="Simulated manual actions per second")
    run.add_argument("--quiet", action="store_true", help="Do not print status lines")

    sub.add_parser("status", help="Show the saved game without running it")
    sub.add_parser("reset", help="Delete the saved game")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_game_config(args.config, variant=args.variant)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    command = args.command or "run"
    if command == "run":
        return run_headless(
            config,
            data_dir=args.data_dir,
            max_ticks=getattr(args, "max_ticks", None),
            auto_buy=getattr(args, "auto_buy", False),
            clicks_per_second=getattr(args, "clicks_per_second", 0.0),
            out=None if getattr(args, "quiet", False) else sys.stdout,
        )

    adapter = PersistenceAdapter(JsonFileStore(default_data_dir(args.data_dir)), config=config)
    if command == "status":
        report = adapter.load_with_report()
        if not report.found:
            print("No saved game.")
            return 0
        print(status_line(SimulationEngine(config=config, state=report.state)))
        return 0

    if adapter.reset():
        print("Saved game deleted.")
    else:
        print("No saved game to delete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
