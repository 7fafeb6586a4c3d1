"""Shift reconstruction state machines.

Two small reducers share one merged event stream:

- the play-clock reducer (:func:`apply_play_clock_event`) folds
  ``play_start``/``play_stop`` into play intervals for game totals;
- the shift reducer (:func:`apply_shift_event`) folds one player's
  ``player_on``/``player_off`` events together with the play-clock events into
  closed :class:`Shift` intervals.

A shift only accumulates while the player is substituted in *and* the play
clock is running. Each reducer takes a frozen state plus an event and returns
the next state, so every row of the transition table can be tested alone.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Sequence

from rinkshift.events import (
    GAME_END,
    PLAY_START,
    PLAY_STOP,
    PLAYER_OFF,
    PLAYER_ON,
    Event,
    elapsed_seconds,
    first_event_of_type,
)
from rinkshift.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Shift:
    player_id: Any
    start: dt.datetime
    end: dt.datetime

    @property
    def duration_seconds(self) -> int:
        return elapsed_seconds(self.start, self.end)


@dataclass(frozen=True)
class ShiftState:
    is_on_rink: bool = False
    is_play_active: bool = False
    current_shift_start: Optional[dt.datetime] = None

    @property
    def has_open_shift(self) -> bool:
        return self.current_shift_start is not None


def game_closing_time(events: Sequence[Event]) -> Optional[dt.datetime]:
    """
    Instant used to close whatever is still open at the end of the stream:
    the game_end time when present, else the last event's time.
    """
    end = first_event_of_type(events, GAME_END)
    if end is not None:
        return end.event_time
    if events:
        return max(e.event_time for e in events)
    return None


def initial_shift_state(
    player_events: Sequence[Event], first_play_start: Optional[Event]
) -> ShiftState:
    """
    A player whose first substitution event is player_on, strictly before
    the first play_start (or with no play_start at all), starts on the rink.
    """
    if not player_events:
        return ShiftState()
    first = player_events[0]
    on_from_start = first.event_type == PLAYER_ON and (
        first_play_start is None or first.event_time < first_play_start.event_time
    )
    return ShiftState(is_on_rink=on_from_start)


def apply_shift_event(
    state: ShiftState, event: Event, player_id: Any
) -> tuple[ShiftState, Optional[Shift]]:
    """Apply one event; returns the next state and the shift it closed, if any."""
    t = event.event_time
    et = event.event_type

    if et == PLAY_START:
        if state.is_on_rink and not state.has_open_shift:
            return replace(state, is_play_active=True, current_shift_start=t), None
        return replace(state, is_play_active=True), None

    if et == PLAY_STOP:
        if state.is_on_rink and state.has_open_shift:
            closed = Shift(player_id, state.current_shift_start, t)  # type: ignore[arg-type]
            return replace(state, is_play_active=False, current_shift_start=None), closed
        return replace(state, is_play_active=False), None

    if event.player_id != player_id:
        return state, None

    if et == PLAYER_ON:
        if state.is_on_rink:
            return state, None
        if state.is_play_active and not state.has_open_shift:
            return replace(state, is_on_rink=True, current_shift_start=t), None
        return replace(state, is_on_rink=True), None

    if et == PLAYER_OFF:
        closed = None
        if state.is_on_rink and state.has_open_shift and state.is_play_active:
            closed = Shift(player_id, state.current_shift_start, t)  # type: ignore[arg-type]
        return replace(state, is_on_rink=False, current_shift_start=None), closed

    return state, None


@dataclass(frozen=True)
class ShiftReport:
    """Closed shifts of one player plus the aggregates derived from them."""

    player_id: Any
    shifts: tuple[Shift, ...]
    total_rink_time_seconds: int = 0
    shift_count: int = 0
    shortest_shift: int = 0
    longest_shift: int = 0
    longest_shift_start_time: Optional[dt.datetime] = None

    @classmethod
    def from_shifts(cls, player_id: Any, shifts: Iterable[Shift]) -> "ShiftReport":
        shifts = tuple(shifts)
        total = 0
        shortest = 0
        longest = 0
        longest_start: Optional[dt.datetime] = None
        for idx, shift in enumerate(shifts):
            d = shift.duration_seconds
            total += d
            if idx == 0 or d < shortest:
                shortest = d
            if idx == 0 or d > longest:
                longest = d
                longest_start = shift.start
        return cls(
            player_id=player_id,
            shifts=shifts,
            total_rink_time_seconds=total,
            shift_count=len(shifts),
            shortest_shift=shortest,
            longest_shift=longest,
            longest_shift_start_time=longest_start,
        )

    @property
    def average_shift_time(self) -> int:
        if self.shift_count <= 0:
            return 0
        return int(round(self.total_rink_time_seconds / self.shift_count))


def reconstruct_shifts(
    player_id: Any,
    events: Sequence[Event],
    *,
    player_events: Optional[Sequence[Event]] = None,
) -> ShiftReport:
    """
    Fold a normalized game stream into the shifts of ``player_id``.

    @param events: the whole normalized game stream (used for the play clock
        and for the end-of-stream closing time).
    @param player_events: this player's substitution events when the caller
        has already selected them (e.g. filtered by team side); defaults to
        every player_on/player_off event carrying ``player_id``.
    """
    if player_events is None:
        mine = [e for e in events if e.is_player_event and e.player_id == player_id]
    else:
        mine = sorted(player_events, key=lambda e: e.sort_key)
    clock = [e for e in events if e.is_play_clock_event]
    stream = sorted(mine + clock, key=lambda e: e.sort_key)

    state = initial_shift_state(mine, first_event_of_type(clock, PLAY_START))
    shifts: list[Shift] = []
    for ev in stream:
        state, closed = apply_shift_event(state, ev, player_id)
        if closed is not None:
            shifts.append(closed)

    if state.is_on_rink and state.has_open_shift and state.is_play_active:
        closing = game_closing_time(events)
        if closing is not None:
            start = state.current_shift_start
            assert start is not None
            shifts.append(Shift(player_id, start, max(closing, start)))
            logger.debug("Closed trailing shift of %s at %s", player_id, closing)

    return ShiftReport.from_shifts(player_id, shifts)


# ----------------------------- play clock -----------------------------


@dataclass(frozen=True)
class PlayInterval:
    start: dt.datetime
    end: dt.datetime

    @property
    def duration_seconds(self) -> int:
        return elapsed_seconds(self.start, self.end)


@dataclass(frozen=True)
class PlayClockState:
    running_since: Optional[dt.datetime] = None

    @property
    def is_running(self) -> bool:
        return self.running_since is not None


def apply_play_clock_event(
    state: PlayClockState, event: Event
) -> tuple[PlayClockState, Optional[PlayInterval]]:
    """Redundant starts keep the original start; stops without a start are ignored."""
    if event.event_type == PLAY_START:
        if state.is_running:
            return state, None
        return PlayClockState(running_since=event.event_time), None
    if event.event_type == PLAY_STOP and state.is_running:
        start = state.running_since
        assert start is not None
        return PlayClockState(), PlayInterval(start, event.event_time)
    return state, None


def fold_play_clock(events: Sequence[Event]) -> list[PlayInterval]:
    """Paired play_start -> play_stop intervals; a trailing start is closed at game end."""
    state = PlayClockState()
    intervals: list[PlayInterval] = []
    for ev in events:
        state, closed = apply_play_clock_event(state, ev)
        if closed is not None:
            intervals.append(closed)
    if state.is_running:
        closing = game_closing_time(events)
        start = state.running_since
        assert start is not None
        if closing is not None:
            intervals.append(PlayInterval(start, max(closing, start)))
    return intervals


def total_play_time_seconds(events: Sequence[Event]) -> int:
    return sum(i.duration_seconds for i in fold_play_clock(events))
