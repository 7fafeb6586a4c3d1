#!/usr/bin/env python3
"""
Recompute the cached on-surface roster ("rink_players") of every goal event.

Against the database (--game-id) the snapshots are written back in place.
With an events file, the updated events are written as JSON to --output
(or back over the input file with --in-place).
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from rinkshift.cli.common import add_common_args, read_events_file, setup_from_args
from rinkshift.errors import RinkshiftError
from rinkshift.goal_cache import rebuild_goal_snapshots
from rinkshift.log import get_logger
from rinkshift.store import InMemoryEventStore

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Rebuild goal roster snapshots for a game.")
    p.add_argument("events", nargs="?", type=Path, help="Events file (.json or .csv)")
    p.add_argument("--game-id", type=int, default=None, help="Game id in the database")
    p.add_argument("--output", "-o", type=Path, default=None, help="Output JSON for file input")
    p.add_argument("--in-place", action="store_true", help="Overwrite a JSON events file")
    return add_common_args(p)


def _rebuild_file(path: Path, output: Optional[Path], in_place: bool) -> int:
    events, roster = read_events_file(path)
    store = InMemoryEventStore(events)
    count = 0
    for game_id in store.game_ids():
        count += len(rebuild_goal_snapshots(store, game_id))

    rows = store.all_events()
    payload = rows if roster is None else {"events": rows, "roster": roster}
    text = json.dumps(payload, indent=2, default=str) + "\n"
    if in_place:
        if path.suffix.lower() != ".json":
            raise SystemExit("--in-place only supports JSON events files")
        output = path
    if output:
        output.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", output)
    else:
        print(text, end="")
    return count


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    try:
        cfg = setup_from_args(args)
        if args.events is not None:
            count = _rebuild_file(args.events, args.output, args.in_place)
        elif args.game_id is not None:
            from rinkshift.store.django_store import DjangoEventStore

            store = DjangoEventStore(config_path=str(cfg.path) if cfg.path else None)
            count = len(rebuild_goal_snapshots(store, args.game_id))
        else:
            raise SystemExit("Either an events file or --game-id is required")
    except RinkshiftError as e:
        logger.error("%s", e)
        raise SystemExit(1)
    logger.info("Updated %d goal events", count)


if __name__ == "__main__":
    main()
