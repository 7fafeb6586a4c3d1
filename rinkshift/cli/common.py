"""Input/output helpers shared by the rinkshift command line tools."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from rich.console import Console
from rich.table import Table

from rinkshift.config import RinkshiftConfig, load_config, normalize_variant
from rinkshift.errors import ConfigError
from rinkshift.log import set_level
from rinkshift.summary import GameStatsSummary, format_seconds_hmmss, format_seconds_mmss

SUMMARY_COLUMNS = [
    "player_id",
    "team_side",
    "total_rink_time_seconds",
    "shift_count",
    "average_shift_time",
    "shortest_shift",
    "longest_shift",
    "longest_shift_start_time",
    "plus_minus",
    "goals_for_on_ice",
    "goals_against_on_ice",
]


def add_common_args(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
    p.add_argument("--config", type=Path, default=None, help="YAML/JSON config file")
    p.add_argument(
        "--variant",
        default=None,
        help="single (goal_for/goal_against) or two-team (goal_home/goal_away)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def setup_from_args(args: argparse.Namespace) -> RinkshiftConfig:
    cfg = load_config(args.config)
    if args.variant:
        cfg.variant = normalize_variant(args.variant)
    set_level("DEBUG" if args.verbose else cfg.log_level)
    return cfg


def _decode_metadata(raw: Any) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    try:
        md = json.loads(s)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid metadata JSON {s!r}: {e}") from e
    return md if isinstance(md, dict) else None


def read_events_csv(path: Path) -> List[Dict[str, Any]]:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    rows: List[Dict[str, Any]] = []
    for rec in df.to_dict(orient="records"):
        row: Dict[str, Any] = {k: (v if v != "" else None) for k, v in rec.items()}
        if row.get("id") is not None and str(row["id"]).isdigit():
            row["id"] = int(row["id"])
        row["metadata"] = _decode_metadata(row.get("metadata"))
        rows.append(row)
    return rows


def read_events_file(path: Path) -> Tuple[List[Dict[str, Any]], Any]:
    """
    Load events (and an optional roster) from a file.
    Accepts:
      - .csv with event columns (metadata as a JSON string)
      - .json with a list of events, or {"events": [...], "roster": ...}
    """
    if path.suffix.lower() == ".csv":
        return read_events_csv(path), None
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict):
        return list(data.get("events") or []), data.get("roster")
    raise ConfigError(f"Unsupported events file layout: {path}")


def read_roster_file(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def summary_dataframe(summary: GameStatsSummary) -> pd.DataFrame:
    rows = [p.to_dict() for p in summary.players]
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    extra = [c for c in df.columns if c not in SUMMARY_COLUMNS and not c.startswith("formatted_")]
    return df[SUMMARY_COLUMNS + extra]


def render_summary_table(summary: GameStatsSummary, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Player shifts")
    table.add_column("Player", justify="left", style="bold")
    table.add_column("Side", justify="left")
    table.add_column("TOI", justify="right")
    table.add_column("Shifts", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Shortest", justify="right")
    table.add_column("Longest", justify="right")
    table.add_column("Longest @", justify="right")
    table.add_column("+/-", justify="right")
    for p in summary.players:
        d = p.to_dict()
        name = d.get("name") or str(p.player_id)
        table.add_row(
            str(name),
            p.team_side or "",
            d["formatted_time"],
            str(p.shift_count),
            d["formatted_average_shift_time"],
            d["formatted_shortest_shift"],
            d["formatted_longest_shift"],
            d["formatted_longest_shift_start_time"],
            f"{p.plus_minus:+d}" if p.plus_minus else "0",
        )
    console.print(table)

    totals = summary.totals
    score = ", ".join(f"{k} {v}" for k, v in sorted(totals.score.items())) or "no goals"
    console.print(
        f"Total play time: {format_seconds_mmss(totals.total_play_time_seconds)}"
        f" ({format_seconds_hmmss(totals.total_play_time_seconds)})  |  Score: {score}"
    )


def write_summary(summary: GameStatsSummary, fmt: str, output: Optional[Path]) -> None:
    if fmt == "table":
        render_summary_table(summary)
        return
    if fmt == "json":
        text = json.dumps(summary.to_dict(), indent=2, default=str) + "\n"
        if output:
            output.write_text(text, encoding="utf-8")
        else:
            print(text, end="")
        return
    sep = "\t" if fmt == "tsv" else ","
    df = summary_dataframe(summary)
    if output:
        df.to_csv(output, sep=sep, index=False)
    else:
        print(df.to_csv(sep=sep, index=False), end="")
