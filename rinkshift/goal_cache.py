"""Goal-metadata cache builder.

Recomputes the on-surface roster of every goal in a game and writes it back to
the event store as the goal's metadata::

    {"rink_players": [...], "calculated_at": "...", "goal_time": "...", "generation": 3}

The roster is resolved over *all* players of the game, independent of which
team scored. The whole read-compute-write cycle runs inside
``store.atomic(game_id)`` and every write carries the generation it was
computed from, so a concurrent substitution edit turns into a
:class:`~rinkshift.errors.StaleSnapshotError` instead of a silently stale cache.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from rinkshift.errors import MalformedEventError
from rinkshift.events import (
    SNAPSHOT_PLAYERS_KEY,
    Event,
    normalize_event_type,
    normalize_events,
    parse_event_time,
)
from rinkshift.log import get_logger
from rinkshift.roster import roster_at
from rinkshift.store.base import EventStore

logger = get_logger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class GoalSnapshotUpdate:
    event_id: Any
    goal_time: dt.datetime
    rink_players: frozenset
    metadata: dict[str, Any]


def _sorted_players(players: set[Any]) -> list[Any]:
    return sorted(players, key=lambda p: (str(type(p).__name__), str(p)))


def build_goal_snapshot(
    goal: Event,
    events: Sequence[Event],
    *,
    now: dt.datetime,
    generation: Optional[int] = None,
) -> GoalSnapshotUpdate:
    players = roster_at(goal.event_time, events)
    metadata: dict[str, Any] = {
        SNAPSHOT_PLAYERS_KEY: _sorted_players(players),
        "calculated_at": now.isoformat(),
        "goal_time": goal.event_time.isoformat(),
    }
    if generation is not None:
        metadata["generation"] = int(generation)
    return GoalSnapshotUpdate(
        event_id=goal.id,
        goal_time=goal.event_time,
        rink_players=frozenset(players),
        metadata=metadata,
    )


def build_goal_snapshots(
    events: Sequence[Event],
    *,
    now: Optional[dt.datetime] = None,
    generation: Optional[int] = None,
) -> list[GoalSnapshotUpdate]:
    """Pure half of the cache builder: one snapshot per goal, in stream order."""
    now = now or _utcnow()
    return [
        build_goal_snapshot(goal, events, now=now, generation=generation)
        for goal in events
        if goal.is_goal
    ]


def rebuild_goal_snapshots(
    store: EventStore, game_id: Any, *, now: Optional[dt.datetime] = None
) -> list[GoalSnapshotUpdate]:
    """Recompute and persist the snapshot of every goal event of ``game_id``."""
    with store.atomic(game_id):
        generation = store.generation(game_id)
        events = normalize_events(store.list_events(game_id))
        updates = build_goal_snapshots(events, now=now, generation=generation)
        for upd in updates:
            logger.debug(
                "Goal %s at %s: %d players on surface",
                upd.event_id,
                upd.goal_time.isoformat(),
                len(upd.rink_players),
            )
            store.update_event_metadata(
                upd.event_id, upd.metadata, expected_generation=generation
            )
    logger.info(
        "Rebuilt %d goal snapshots for game %s (generation %s)",
        len(updates),
        game_id,
        generation,
    )
    return updates


def record_goal(
    store: EventStore,
    game_id: Any,
    event_type: str,
    event_time: Any,
    *,
    team_side: Optional[str] = None,
    player_id: Any = None,
    now: Optional[dt.datetime] = None,
) -> Any:
    """
    Insert a goal event with its snapshot already attached, resolved from the
    substitutions stored so far.
    """
    with store.atomic(game_id):
        generation = store.generation(game_id)
        events = normalize_events(store.list_events(game_id))
        goal_time = parse_event_time(event_time)
        if goal_time is None:
            raise MalformedEventError(f"Unparseable event_time {event_time!r}", value=event_time)
        pending = Event(id=None, event_type=normalize_event_type(event_type), event_time=goal_time)
        if not pending.is_goal:
            raise MalformedEventError(f"Not a goal event type: {event_type!r}")
        snapshot = build_goal_snapshot(
            pending, events, now=now or _utcnow(), generation=generation
        )
        event_id = store.insert_event(
            game_id,
            event_type=pending.event_type,
            event_time=goal_time,
            team_side=team_side,
            player_id=player_id,
            metadata=snapshot.metadata,
        )
    logger.info(
        "Recorded %s at %s with %d players on surface",
        pending.event_type,
        goal_time.isoformat(),
        len(snapshot.rink_players),
    )
    return event_id
