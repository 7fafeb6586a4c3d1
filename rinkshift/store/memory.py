from __future__ import annotations

import copy
import itertools
import threading
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping, Optional

from rinkshift.errors import EventNotFoundError, StaleSnapshotError
from rinkshift.log import get_logger
from rinkshift.store.base import (
    EditImpact,
    edit_impact,
    is_substitution_type,
    snapshots_affected_by,
    strip_goal_snapshot,
)

logger = get_logger(__name__)

_EVENT_FIELDS = ("event_type", "event_time", "player_id", "team_side", "metadata")


class InMemoryEventStore:
    """Dict-backed event store, used by the CLI for file input and by tests."""

    def __init__(self, events: Optional[Iterable[Mapping[str, Any]]] = None):
        self._lock = threading.RLock()
        self._rows: dict[Any, dict[str, Any]] = {}
        self._generations: dict[Any, int] = {}
        self._ids = itertools.count(1)
        # Bulk load keeps snapshots as they are; only later edits invalidate them.
        for raw in events or []:
            row = copy.deepcopy(dict(raw))
            if row.get("id") is None:
                row["id"] = self._next_id()
            row.setdefault("game_id", None)
            for k in _EVENT_FIELDS:
                row.setdefault(k, None)
            self._rows[row["id"]] = row

    def _next_id(self) -> int:
        while True:
            candidate = next(self._ids)
            if candidate not in self._rows:
                return candidate

    def _row(self, event_id: Any) -> dict[str, Any]:
        row = self._rows.get(event_id)
        if row is None:
            raise EventNotFoundError(event_id)
        return row

    def _substitutions_changed(self, game_id: Any, changed_time: Any) -> None:
        self._generations[game_id] = self._generations.get(game_id, 0) + 1
        game_rows = [r for r in self._rows.values() if r.get("game_id") == game_id]
        for event_id in snapshots_affected_by(game_rows, changed_time):
            row = self._rows[event_id]
            row["metadata"] = strip_goal_snapshot(row.get("metadata"))
            logger.debug("Invalidated goal snapshot on event %s", event_id)

    def _apply_edit(self, row: dict[str, Any], impact: EditImpact) -> None:
        game_id = row.get("game_id")
        if impact.goal_moved:
            row["metadata"] = strip_goal_snapshot(row.get("metadata"))
            logger.debug("Goal %s moved, dropped its snapshot", row.get("id"))
        if impact.substitution_changed:
            self._substitutions_changed(game_id, impact.changed_time)
        elif impact.bumps_generation:
            self._generations[game_id] = self._generations.get(game_id, 0) + 1

    @contextmanager
    def atomic(self, game_id: Any) -> Iterator["InMemoryEventStore"]:
        with self._lock:
            yield self

    def generation(self, game_id: Any) -> int:
        with self._lock:
            return self._generations.get(game_id, 0)

    def list_events(self, game_id: Any) -> list[dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(r) for r in self._rows.values() if r.get("game_id") == game_id
            ]

    def game_ids(self) -> list[Any]:
        with self._lock:
            return list(dict.fromkeys(r.get("game_id") for r in self._rows.values()))

    def all_events(self) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._rows.values()]

    def get_event(self, event_id: Any) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._row(event_id))

    def insert_event(self, game_id: Any, **fields: Any) -> Any:
        with self._lock:
            event_id = fields.pop("id", None)
            if event_id is None:
                event_id = self._next_id()
            row: dict[str, Any] = {"id": event_id, "game_id": game_id}
            for k in _EVENT_FIELDS:
                row[k] = copy.deepcopy(fields.pop(k, None))
            row.update(fields)
            self._rows[event_id] = row
            if is_substitution_type(row.get("event_type")):
                self._substitutions_changed(game_id, row.get("event_time"))
            return event_id

    def update_event(self, event_id: Any, **fields: Any) -> None:
        with self._lock:
            row = self._row(event_id)
            before = dict(row)
            row.update(copy.deepcopy(fields))
            self._apply_edit(row, edit_impact(before, row))

    def update_event_metadata(
        self,
        event_id: Any,
        metadata: Optional[Mapping[str, Any]],
        *,
        expected_generation: Optional[int] = None,
    ) -> None:
        with self._lock:
            row = self._row(event_id)
            game_id = row.get("game_id")
            if expected_generation is not None:
                actual = self._generations.get(game_id, 0)
                if actual != int(expected_generation):
                    raise StaleSnapshotError(game_id, expected_generation, actual)
            row["metadata"] = copy.deepcopy(dict(metadata)) if metadata is not None else None

    def delete_event(self, event_id: Any) -> None:
        with self._lock:
            row = self._rows.pop(event_id, None)
            if row is None:
                raise EventNotFoundError(event_id)
            if is_substitution_type(row.get("event_type")):
                self._substitutions_changed(row.get("game_id"), row.get("event_time"))
