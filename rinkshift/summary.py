"""Per-player shift/plus-minus summaries and game-level totals for one game."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from rinkshift.events import (
    GAME_END,
    GOAL_AGAINST,
    GOAL_AWAY,
    GOAL_FOR,
    GOAL_HOME,
    PLAY_START,
    Event,
    elapsed_seconds,
    first_event_of_type,
    normalize_events,
    normalize_team_side,
)
from rinkshift.log import get_logger
from rinkshift.plus_minus import (
    SideResolver,
    SingleTeamSides,
    TwoTeamSides,
    cached_rink_players,
    compute_plus_minus,
)
from rinkshift.shifts import Shift, reconstruct_shifts, total_play_time_seconds

logger = get_logger(__name__)

_SCORE_KEYS = {
    GOAL_FOR: "for",
    GOAL_AGAINST: "against",
    GOAL_HOME: "home",
    GOAL_AWAY: "away",
}


def format_seconds_hmmss(raw: Any) -> str:
    """Format seconds as H:MM:SS (hours not zero-padded)."""
    try:
        t = int(raw)
    except (TypeError, ValueError):
        return "0:00:00"
    if t < 0:
        t = 0
    h = t // 3600
    r = t % 3600
    m = r // 60
    s = r % 60
    return f"{h}:{m:02d}:{s:02d}"


def format_seconds_mmss(raw: Any) -> str:
    """Format seconds as M:SS with minutes not zero-padded (may exceed 59)."""
    try:
        t = int(raw)
    except (TypeError, ValueError):
        return "0:00"
    if t < 0:
        t = 0
    return f"{t // 60}:{t % 60:02d}"


@dataclass(frozen=True)
class PlayerStatsSummary:
    player_id: Any
    team_side: Optional[str] = None
    total_rink_time_seconds: int = 0
    shift_count: int = 0
    average_shift_time: int = 0
    shortest_shift: int = 0
    longest_shift: int = 0
    longest_shift_start_time: Optional[dt.datetime] = None
    longest_shift_start_elapsed_seconds: Optional[int] = None
    plus_minus: int = 0
    goals_for_on_ice: int = 0
    goals_against_on_ice: int = 0
    shifts: tuple[Shift, ...] = ()
    attributes: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        start = self.longest_shift_start_time
        elapsed = self.longest_shift_start_elapsed_seconds
        out = dict(self.attributes)
        out.update(
            {
                "player_id": self.player_id,
                "team_side": self.team_side,
                "total_rink_time_seconds": self.total_rink_time_seconds,
                "shift_count": self.shift_count,
                "average_shift_time": self.average_shift_time,
                "shortest_shift": self.shortest_shift,
                "longest_shift": self.longest_shift,
                "longest_shift_start_time": start.isoformat() if start else None,
                "plus_minus": self.plus_minus,
                "goals_for_on_ice": self.goals_for_on_ice,
                "goals_against_on_ice": self.goals_against_on_ice,
                "formatted_time": format_seconds_hmmss(self.total_rink_time_seconds),
                "formatted_average_shift_time": format_seconds_hmmss(self.average_shift_time),
                "formatted_shortest_shift": format_seconds_hmmss(self.shortest_shift),
                "formatted_longest_shift": format_seconds_hmmss(self.longest_shift),
                "formatted_longest_shift_start_time": (
                    format_seconds_mmss(elapsed) if elapsed is not None else "N/A"
                ),
            }
        )
        return out


@dataclass(frozen=True)
class GameTotals:
    total_play_time_seconds: int = 0
    score: Mapping[str, int] = field(default_factory=dict)
    goal_count: int = 0
    first_play_start: Optional[dt.datetime] = None
    game_end: Optional[dt.datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_play_time_seconds": self.total_play_time_seconds,
            "formatted_total_play_time": format_seconds_mmss(self.total_play_time_seconds),
            "score": dict(self.score),
            "goal_count": self.goal_count,
            "first_play_start": self.first_play_start.isoformat() if self.first_play_start else None,
            "game_end": self.game_end.isoformat() if self.game_end else None,
        }


@dataclass(frozen=True)
class GameStatsSummary:
    players: list[PlayerStatsSummary]
    totals: GameTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "players": [p.to_dict() for p in self.players],
            "totals": self.totals.to_dict(),
        }


RosterInput = Union[Mapping[Any, Any], Iterable[Any], None]


def normalize_roster(roster: RosterInput) -> dict[Any, dict[str, Any]]:
    """
    Accepts:
      - a mapping of player id -> display attributes (dict) or team side (str)
      - an iterable of player ids
      - an iterable of dicts carrying an "id" key
    Returns player id -> attributes dict, in input order.
    """
    out: dict[Any, dict[str, Any]] = {}
    if roster is None:
        return out
    if isinstance(roster, Mapping):
        for pid, attrs in roster.items():
            if isinstance(attrs, Mapping):
                out[pid] = dict(attrs)
            elif attrs is None:
                out[pid] = {}
            else:
                out[pid] = {"team_side": attrs}
        return out
    for item in roster:
        if isinstance(item, Mapping):
            pid = item.get("id", item.get("player_id"))
            if pid is None:
                continue
            out[pid] = {k: v for k, v in item.items() if k not in ("id", "player_id")}
        else:
            out[item] = {}
    return out


def discover_roster(events: Sequence[Event]) -> dict[Any, dict[str, Any]]:
    """Players seen in substitution events or cached goal snapshots, first-seen order."""
    out: dict[Any, dict[str, Any]] = {}
    for ev in events:
        if ev.is_player_event and ev.player_id is not None:
            attrs = out.setdefault(ev.player_id, {})
            if ev.team_side and not attrs.get("team_side"):
                attrs["team_side"] = ev.team_side
        elif ev.is_goal:
            for pid in sorted(cached_rink_players(ev) or (), key=str):
                out.setdefault(pid, {})
    return out


def compute_game_totals(events: Sequence[Event]) -> GameTotals:
    score: dict[str, int] = {}
    goal_count = 0
    for ev in events:
        key = _SCORE_KEYS.get(ev.event_type)
        if key is None:
            continue
        score[key] = score.get(key, 0) + 1
        goal_count += 1
    first_start = first_event_of_type(events, PLAY_START)
    end = first_event_of_type(events, GAME_END)
    return GameTotals(
        total_play_time_seconds=total_play_time_seconds(events),
        score=score,
        goal_count=goal_count,
        first_play_start=first_start.event_time if first_start else None,
        game_end=end.event_time if end else None,
    )


def _events_for_player(
    events: Sequence[Event], player_id: Any, team_side: Optional[str]
) -> list[Event]:
    return [
        e
        for e in events
        if e.is_player_event
        and e.player_id == player_id
        and (team_side is None or e.team_side is None or e.team_side == team_side)
    ]


def summarize_game(
    raw_events: Iterable[Any],
    roster: RosterInput = None,
    *,
    sides: Optional[SideResolver] = None,
    variant: Optional[str] = None,
) -> GameStatsSummary:
    """
    Reconstruct shifts and plus/minus for every roster player of one game.

    @param raw_events: all events of the game (raw mappings or Events, any order).
    @param roster: the stats subjects (see :func:`normalize_roster`); players
        are discovered from the events when omitted.
    @param sides: explicit side-resolution strategy.
    @param variant: "single" or "two-team" when ``sides`` is not given; in the
        two-team variant player sides come from the roster, else from their
        substitution events.
    @raises MalformedEventError: if any event timestamp cannot be parsed.
    """
    events = normalize_events(raw_events)
    players = normalize_roster(roster) if roster is not None else discover_roster(events)

    if variant == "two-team" and sides is None:
        discovered = discover_roster(events)
        player_sides = {
            pid: attrs.get("team_side") or discovered.get(pid, {}).get("team_side")
            for pid, attrs in players.items()
        }
        sides = TwoTeamSides(player_sides)
    resolver: SideResolver = sides if sides is not None else SingleTeamSides()
    two_team = isinstance(resolver, TwoTeamSides)

    totals = compute_game_totals(events)
    plus_minus = compute_plus_minus(players.keys(), events, resolver)

    summaries: list[PlayerStatsSummary] = []
    for pid, attrs in players.items():
        side = normalize_team_side(attrs.get("team_side"))
        if two_team and side is None:
            side = resolver.player_sides.get(pid)  # type: ignore[attr-defined]
        mine = _events_for_player(events, pid, side if two_team else None)
        if two_team and side is not None and not mine:
            # The resolver side matches none of the player's substitutions; keep them all.
            mine = _events_for_player(events, pid, None)
            if mine:
                logger.warning(
                    "Player %s is on side %s but their substitutions carry another side",
                    pid,
                    side,
                )
        report = reconstruct_shifts(pid, events, player_events=mine)
        elapsed = None
        if report.longest_shift_start_time is not None and totals.first_play_start is not None:
            if report.longest_shift_start_time >= totals.first_play_start:
                elapsed = elapsed_seconds(totals.first_play_start, report.longest_shift_start_time)
        pm = plus_minus[pid]
        summaries.append(
            PlayerStatsSummary(
                player_id=pid,
                team_side=side,
                total_rink_time_seconds=report.total_rink_time_seconds,
                shift_count=report.shift_count,
                average_shift_time=report.average_shift_time,
                shortest_shift=report.shortest_shift,
                longest_shift=report.longest_shift,
                longest_shift_start_time=report.longest_shift_start_time,
                longest_shift_start_elapsed_seconds=elapsed,
                plus_minus=pm.plus_minus,
                goals_for_on_ice=pm.goals_for_on_ice,
                goals_against_on_ice=pm.goals_against_on_ice,
                shifts=report.shifts,
                attributes={k: v for k, v in attrs.items() if k != "team_side"},
            )
        )
        logger.debug(
            "Player %s: %ds over %d shifts, +/- %d",
            pid,
            report.total_rink_time_seconds,
            report.shift_count,
            pm.plus_minus,
        )

    # Stable sort: equal rink times keep roster order.
    summaries.sort(key=lambda s: s.total_rink_time_seconds, reverse=True)
    return GameStatsSummary(players=summaries, totals=totals)
