from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, ContextManager, Iterable, Mapping, Optional, Protocol

from rinkshift.events import (
    GOAL_EVENT_TYPES,
    PLAYER_EVENT_TYPES,
    SNAPSHOT_KEYS,
    normalize_event_type,
    parse_event_time,
)


class EventStore(Protocol):
    """Persistence boundary of the engine.

    Reads return raw event mappings for one game (any order). Writes are
    limited to goal metadata, plus the insert/update/delete surface that keeps the
    per-game generation counter and cached goal snapshots consistent.
    """

    def list_events(self, game_id: Any) -> list[dict[str, Any]]: ...

    def update_event_metadata(
        self,
        event_id: Any,
        metadata: Optional[Mapping[str, Any]],
        *,
        expected_generation: Optional[int] = None,
    ) -> None: ...

    def insert_event(self, game_id: Any, **fields: Any) -> Any: ...

    def update_event(self, event_id: Any, **fields: Any) -> None: ...

    def delete_event(self, event_id: Any) -> None: ...

    def generation(self, game_id: Any) -> int: ...

    def atomic(self, game_id: Any) -> ContextManager[Any]: ...


def strip_goal_snapshot(metadata: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """Drop snapshot keys from goal metadata; returns None when nothing is left."""
    if not metadata:
        return None
    kept = {k: v for k, v in metadata.items() if k not in SNAPSHOT_KEYS}
    return kept or None


def has_goal_snapshot(metadata: Optional[Mapping[str, Any]]) -> bool:
    return bool(metadata) and any(k in metadata for k in SNAPSHOT_KEYS)  # type: ignore[operator]


def is_substitution_type(event_type: Any) -> bool:
    return normalize_event_type(event_type) in PLAYER_EVENT_TYPES


def snapshots_affected_by(
    raw_events: Iterable[Mapping[str, Any]], changed_time: Any
) -> list[Any]:
    """
    Ids of goal events whose cached roster may depend on a substitution at
    ``changed_time``: every goal at or after that instant. An unparseable
    time conservatively affects every goal.
    """
    when: Optional[dt.datetime] = parse_event_time(changed_time)
    out: list[Any] = []
    for raw in raw_events:
        if normalize_event_type(raw.get("event_type")) not in GOAL_EVENT_TYPES:
            continue
        if not has_goal_snapshot(raw.get("metadata")):
            continue
        goal_time = parse_event_time(raw.get("event_time"))
        if when is None or goal_time is None or goal_time >= when:
            out.append(raw.get("id"))
    return out



@dataclass(frozen=True)
class EditImpact:
    """What an in-place event edit does to the game's cached goal snapshots."""

    substitution_changed: bool = False
    # Earliest instant touched by a substitution edit; None with substitution_changed
    # means the instant is unknown and every goal is affected.
    changed_time: Optional[dt.datetime] = None
    goal_moved: bool = False

    @property
    def bumps_generation(self) -> bool:
        return self.substitution_changed or self.goal_moved


def edit_impact(before: Mapping[str, Any], after: Mapping[str, Any]) -> EditImpact:
    """
    Compare an event row before and after an edit.

    A substitution edit affects goals from the earlier of its old and new
    times on. A goal whose type or time changed loses its own snapshot, which
    was resolved for the old instant.
    """
    before_type = normalize_event_type(before.get("event_type"))
    after_type = normalize_event_type(after.get("event_type"))
    before_time = parse_event_time(before.get("event_time"))
    after_time = parse_event_time(after.get("event_time"))

    touched = [
        t
        for et, t in ((before_type, before_time), (after_type, after_time))
        if et in PLAYER_EVENT_TYPES
    ]
    changed_time = None
    if touched and all(t is not None for t in touched):
        changed_time = min(touched)  # type: ignore[type-var]

    is_goal = before_type in GOAL_EVENT_TYPES or after_type in GOAL_EVENT_TYPES
    goal_moved = is_goal and (before_type != after_type or before_time != after_time)
    return EditImpact(
        substitution_changed=bool(touched),
        changed_time=changed_time,
        goal_moved=goal_moved,
    )
