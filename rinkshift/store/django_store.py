from __future__ import annotations

import datetime as dt
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from rinkshift.errors import EventNotFoundError, MalformedEventError, StaleSnapshotError
from rinkshift.events import normalize_event_type, normalize_team_side, parse_event_time
from rinkshift.log import get_logger
from rinkshift.store.base import (
    edit_impact,
    is_substitution_type,
    snapshots_affected_by,
    strip_goal_snapshot,
)
from rinkshift.webapp.orm import _import_models, ensure_schema, setup_django

logger = get_logger(__name__)

_ROW_FIELDS = ("id", "game_id", "event_type", "event_time", "player_id", "team_side", "metadata")
_EDITABLE_FIELDS = ("event_type", "event_time", "player_id", "team_side", "metadata")


def _player_id_or_none(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _column_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and normalize the given editable fields into column values."""
    out: dict[str, Any] = {}
    if "event_type" in fields:
        out["event_type"] = normalize_event_type(fields["event_type"])
        if not out["event_type"]:
            raise MalformedEventError("Event has no event_type")
    if "event_time" in fields:
        out["event_time"] = parse_event_time(fields["event_time"])
        if out["event_time"] is None:
            raise MalformedEventError(
                f"Unparseable event_time {fields['event_time']!r}", value=fields["event_time"]
            )
    if "player_id" in fields:
        out["player_id"] = _player_id_or_none(fields["player_id"])
    if "team_side" in fields:
        out["team_side"] = normalize_team_side(fields["team_side"])
    if "metadata" in fields:
        md = fields["metadata"]
        out["metadata"] = dict(md) if isinstance(md, Mapping) else None
    return out


class DjangoEventStore:
    """Event store backed by the Django ORM (sqlite by default).

    Substitution edits bump ``Game.event_generation`` and strip the cached
    snapshot from every goal at or after the edited instant, inside the same
    transaction as the edit. Moving a goal bumps the generation and drops
    that goal's snapshot.
    """

    def __init__(self, *, config_path: Optional[str] = None, create_schema: bool = True):
        setup_django(config_path=config_path)
        if create_schema:
            ensure_schema()
        self._m = _import_models()

    def create_game(self, name: Optional[str] = None) -> int:
        g = self._m.Game.objects.create(name=name, created_at=dt.datetime.now())
        return int(g.id)

    @contextmanager
    def atomic(self, game_id: Any) -> Iterator["DjangoEventStore"]:
        from django.db import transaction

        with transaction.atomic():
            # Row lock on backends that support it; sqlite serializes writers anyway.
            list(self._m.Game.objects.select_for_update().filter(id=int(game_id)).values("id"))
            yield self

    def generation(self, game_id: Any) -> int:
        gen = (
            self._m.Game.objects.filter(id=int(game_id))
            .values_list("event_generation", flat=True)
            .first()
        )
        return int(gen or 0)

    def list_events(self, game_id: Any) -> list[dict[str, Any]]:
        return list(
            self._m.GameEvent.objects.filter(game_id=int(game_id))
            .order_by("event_time", "id")
            .values(*_ROW_FIELDS)
        )

    def _bump_generation(self, game_id: int) -> None:
        from django.db.models import F

        self._m.Game.objects.filter(id=int(game_id)).update(
            event_generation=F("event_generation") + 1, updated_at=dt.datetime.now()
        )

    def _substitutions_changed(self, game_id: int, changed_time: Any) -> None:
        self._bump_generation(game_id)
        now = dt.datetime.now()
        for event_id in snapshots_affected_by(self.list_events(game_id), changed_time):
            md = (
                self._m.GameEvent.objects.filter(id=int(event_id))
                .values_list("metadata", flat=True)
                .first()
            )
            self._m.GameEvent.objects.filter(id=int(event_id)).update(
                metadata=strip_goal_snapshot(md), updated_at=now
            )
            logger.debug("Invalidated goal snapshot on event %s", event_id)

    def insert_event(self, game_id: Any, **fields: Any) -> Any:
        from django.db import transaction

        values = _column_values({k: fields.get(k) for k in _EDITABLE_FIELDS})
        with transaction.atomic():
            ev = self._m.GameEvent.objects.create(
                game_id=int(game_id), created_at=dt.datetime.now(), **values
            )
            if is_substitution_type(values["event_type"]):
                self._substitutions_changed(int(game_id), values["event_time"])
        return int(ev.id)

    def update_event_metadata(
        self,
        event_id: Any,
        metadata: Optional[Mapping[str, Any]],
        *,
        expected_generation: Optional[int] = None,
    ) -> None:
        from django.db import transaction

        with transaction.atomic():
            game_id = (
                self._m.GameEvent.objects.filter(id=int(event_id))
                .values_list("game_id", flat=True)
                .first()
            )
            if game_id is None:
                raise EventNotFoundError(event_id)
            if expected_generation is not None:
                actual = (
                    self._m.Game.objects.select_for_update()
                    .filter(id=int(game_id))
                    .values_list("event_generation", flat=True)
                    .first()
                )
                if int(actual or 0) != int(expected_generation):
                    raise StaleSnapshotError(game_id, expected_generation, int(actual or 0))
            self._m.GameEvent.objects.filter(id=int(event_id)).update(
                metadata=dict(metadata) if metadata is not None else None,
                updated_at=dt.datetime.now(),
            )

    def update_event(self, event_id: Any, **fields: Any) -> None:
        """
        Edit an event in place. Substitution edits invalidate later goal
        snapshots; a goal whose time or type changes loses its own snapshot.
        """
        from django.db import transaction

        unknown = set(fields) - set(_EDITABLE_FIELDS)
        if unknown:
            raise MalformedEventError(f"Cannot update event fields: {sorted(unknown)}")
        with transaction.atomic():
            before = (
                self._m.GameEvent.objects.filter(id=int(event_id))
                .values("id", "game_id", *_EDITABLE_FIELDS)
                .first()
            )
            if before is None:
                raise EventNotFoundError(event_id)
            changes = _column_values(fields)
            after = dict(before)
            after.update(changes)
            impact = edit_impact(before, after)
            if impact.goal_moved:
                changes["metadata"] = strip_goal_snapshot(changes.get("metadata", before["metadata"]))
                logger.debug("Goal %s moved, dropped its snapshot", event_id)
            changes["updated_at"] = dt.datetime.now()
            self._m.GameEvent.objects.filter(id=int(event_id)).update(**changes)

            game_id = int(before["game_id"])
            if impact.substitution_changed:
                self._substitutions_changed(game_id, impact.changed_time)
            elif impact.bumps_generation:
                self._bump_generation(game_id)

    def delete_event(self, event_id: Any) -> None:
        from django.db import transaction

        with transaction.atomic():
            row = (
                self._m.GameEvent.objects.filter(id=int(event_id))
                .values("game_id", "event_type", "event_time")
                .first()
            )
            if row is None:
                raise EventNotFoundError(event_id)
            self._m.GameEvent.objects.filter(id=int(event_id)).delete()
            if is_substitution_type(row["event_type"]):
                self._substitutions_changed(int(row["game_id"]), row["event_time"])
