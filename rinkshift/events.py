"""Event model and the normalizer that turns raw event rows into a clean stream.

Raw events are plain mappings as they come out of the event store, e.g.::

    {"id": 17, "event_type": "player_on", "event_time": "2024-03-02T10:15:00Z",
     "player_id": "p1", "team_side": "home", "metadata": None}

:func:`normalize_events` parses them into immutable :class:`Event` objects in
``(event_time, seq)`` order.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from rinkshift.errors import MalformedEventError
from rinkshift.log import get_logger

logger = get_logger(__name__)

PLAYER_ON = "player_on"
PLAYER_OFF = "player_off"
PLAY_START = "play_start"
PLAY_STOP = "play_stop"
GOAL_FOR = "goal_for"
GOAL_AGAINST = "goal_against"
GOAL_HOME = "goal_home"
GOAL_AWAY = "goal_away"
GAME_END = "game_end"
PLAYER_DELETED = "player_deleted"
PLAYER_POSITIONS = "player_positions"

PLAYER_EVENT_TYPES = frozenset({PLAYER_ON, PLAYER_OFF})
PLAY_CLOCK_EVENT_TYPES = frozenset({PLAY_START, PLAY_STOP})
SINGLE_TEAM_GOAL_TYPES = frozenset({GOAL_FOR, GOAL_AGAINST})
TWO_TEAM_GOAL_TYPES = frozenset({GOAL_HOME, GOAL_AWAY})
GOAL_EVENT_TYPES = SINGLE_TEAM_GOAL_TYPES | TWO_TEAM_GOAL_TYPES

# High-frequency telemetry, never state-changing.
DROPPED_EVENT_TYPES = frozenset({PLAYER_POSITIONS})

# Goal snapshot keys cached in a goal event's metadata.
SNAPSHOT_PLAYERS_KEY = "rink_players"
SNAPSHOT_KEYS = (SNAPSHOT_PLAYERS_KEY, "calculated_at", "goal_time", "generation")

_UTC = dt.timezone.utc


@dataclass(frozen=True)
class Event:
    id: Any
    event_type: str
    event_time: dt.datetime
    seq: int = 0
    game_id: Any = None
    player_id: Any = None
    team_side: Optional[str] = None
    metadata: Optional[Mapping[str, Any]] = field(default=None, compare=False, hash=False)

    @property
    def sort_key(self) -> tuple[dt.datetime, int]:
        return (self.event_time, self.seq)

    @property
    def is_goal(self) -> bool:
        return self.event_type in GOAL_EVENT_TYPES

    @property
    def is_player_event(self) -> bool:
        return self.event_type in PLAYER_EVENT_TYPES

    @property
    def is_play_clock_event(self) -> bool:
        return self.event_type in PLAY_CLOCK_EVENT_TYPES


def normalize_event_type(raw: Any) -> str:
    return str(raw or "").strip().lower()


def normalize_team_side(raw: Any) -> Optional[str]:
    s = str(raw or "").strip().lower()
    return s or None


def parse_event_time(value: Any) -> Optional[dt.datetime]:
    """
    Parse an event timestamp into a naive UTC datetime.
    Accepts:
      - datetime objects (aware values are converted to UTC)
      - ISO-8601 strings, including a trailing 'Z'
      - int/float epoch seconds
    Returns None when the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dt.datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            parsed = dt.datetime.fromtimestamp(value, tz=_UTC)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        s = str(value).strip()
        if not s:
            return None
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            parsed = dt.datetime.fromisoformat(s)
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(_UTC).replace(tzinfo=None)
    return parsed


def _as_seq(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        s = value.strip()
        digits = s[1:] if s[:1] in ("+", "-") else s
        if digits.isdecimal():
            return int(s)
    return None


def _event_seq(raw: Mapping[str, Any], position: int) -> int:
    """Explicit seq, else an integer id (digit strings count, e.g. CSV input), else position."""
    for key in ("seq", "id"):
        seq = _as_seq(raw.get(key))
        if seq is not None:
            return seq
    return position


def coerce_event(raw: Any, position: int = 0) -> Event:
    """Build an :class:`Event` from a raw mapping (or pass an Event through)."""
    if isinstance(raw, Event):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedEventError(f"Event must be a mapping, got {type(raw).__name__}")

    event_id = raw.get("id")
    event_type = normalize_event_type(raw.get("event_type") or raw.get("type"))
    if not event_type:
        raise MalformedEventError("Event has no event_type", event_id=event_id)

    raw_time = raw.get("event_time")
    event_time = parse_event_time(raw_time)
    if event_time is None:
        raise MalformedEventError(
            f"Unparseable event_time {raw_time!r}", event_id=event_id, value=raw_time
        )

    game_id = raw.get("game_id")
    if game_id is None:
        game_id = raw.get("match_id", raw.get("session_id"))
    metadata = raw.get("metadata")
    return Event(
        id=event_id,
        event_type=event_type,
        event_time=event_time,
        seq=_event_seq(raw, position),
        game_id=game_id,
        player_id=raw.get("player_id"),
        team_side=normalize_team_side(raw.get("team_side")),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
    )


def normalize_events(raw_events: Iterable[Any]) -> list[Event]:
    """
    Sort and filter a raw event list for one game into a chronological stream.

    Telemetry events are dropped; any other event with a missing or
    unparseable timestamp raises :class:`MalformedEventError` so the caller
    fails the whole game instead of reconstructing from partial data.
    The input is not mutated.
    """
    out: list[Event] = []
    dropped = 0
    for position, raw in enumerate(raw_events):
        if not isinstance(raw, Event) and isinstance(raw, Mapping):
            if normalize_event_type(raw.get("event_type") or raw.get("type")) in DROPPED_EVENT_TYPES:
                dropped += 1
                continue
        ev = coerce_event(raw, position)
        if ev.event_type in DROPPED_EVENT_TYPES:
            dropped += 1
            continue
        out.append(ev)
    out.sort(key=lambda e: e.sort_key)
    if dropped:
        logger.debug("Dropped %d telemetry events", dropped)
    return out


def player_events(events: Iterable[Event], player_id: Any = None) -> list[Event]:
    """Return player_on/player_off events, optionally for a single player."""
    return [
        e
        for e in events
        if e.is_player_event and (player_id is None or e.player_id == player_id)
    ]


def play_clock_events(events: Iterable[Event]) -> list[Event]:
    return [e for e in events if e.is_play_clock_event]


def goal_events(events: Iterable[Event]) -> list[Event]:
    return [e for e in events if e.is_goal]


def first_event_of_type(events: Iterable[Event], event_type: str) -> Optional[Event]:
    for e in events:
        if e.event_type == event_type:
            return e
    return None


def last_event_of_type(events: Iterable[Event], event_type: str) -> Optional[Event]:
    found = None
    for e in events:
        if e.event_type == event_type:
            found = e
    return found


def elapsed_seconds(start: dt.datetime, end: dt.datetime) -> int:
    """Whole seconds between two instants, floored; never negative."""
    return max(0, int(math.floor((end - start).total_seconds())))
