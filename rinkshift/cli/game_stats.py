#!/usr/bin/env python3
"""
Summarize per-player rink time, shifts and plus/minus for one game.

Events come either from a file (JSON list, {"events": [...], "roster": ...},
or CSV) or from the configured database (--game-id).
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from rinkshift.cli.common import (
    add_common_args,
    read_events_file,
    read_roster_file,
    setup_from_args,
    write_summary,
)
from rinkshift.errors import RinkshiftError
from rinkshift.log import get_logger
from rinkshift.summary import summarize_game

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Reconstruct shifts and plus/minus for a game.")
    p.add_argument("events", nargs="?", type=Path, help="Events file (.json or .csv)")
    p.add_argument("--game-id", type=int, default=None, help="Load events from the database")
    p.add_argument("--roster", type=Path, default=None, help="Roster JSON file")
    p.add_argument(
        "--format",
        choices=("table", "tsv", "csv", "json"),
        default="table",
        help="Output format",
    )
    p.add_argument("--output", "-o", type=Path, default=None, help="Write output to a file")
    return add_common_args(p)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    try:
        cfg = setup_from_args(args)
        roster = None
        if args.events is not None:
            events, roster = read_events_file(args.events)
        elif args.game_id is not None:
            from rinkshift.store.django_store import DjangoEventStore

            store = DjangoEventStore(config_path=str(cfg.path) if cfg.path else None)
            events = store.list_events(args.game_id)
        else:
            raise SystemExit("Either an events file or --game-id is required")
        if args.roster is not None:
            roster = read_roster_file(args.roster)

        summary = summarize_game(events, roster, variant=cfg.variant)
    except RinkshiftError as e:
        logger.error("%s", e)
        raise SystemExit(1)

    write_summary(summary, args.format, args.output)
    if args.output:
        logger.info("Wrote %s", args.output)


if __name__ == "__main__":
    main()
