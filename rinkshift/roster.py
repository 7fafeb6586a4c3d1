from __future__ import annotations

import datetime as dt
from typing import Any, Iterable

from rinkshift.events import PLAYER_ON, Event


def roster_at(timestamp: dt.datetime, events: Iterable[Event]) -> set[Any]:
    """
    Return the players on the surface at ``timestamp``.

    Replays player_on/player_off events with ``event_time <= timestamp`` in
    ``(event_time, seq)`` order; each player's last event wins. Other event
    types are ignored, so the full game stream can be passed in.
    """
    replay = sorted(
        (e for e in events if e.is_player_event and e.event_time <= timestamp),
        key=lambda e: e.sort_key,
    )
    on_surface: dict[Any, bool] = {}
    for ev in replay:
        on_surface[ev.player_id] = ev.event_type == PLAYER_ON
    return {pid for pid, on in on_surface.items() if on and pid is not None}
