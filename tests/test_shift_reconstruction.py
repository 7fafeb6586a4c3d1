import datetime as dt

import pytest

from rinkshift.events import Event, normalize_events
from rinkshift.roster import roster_at
from rinkshift.shifts import (
    PlayClockState,
    Shift,
    ShiftReport,
    ShiftState,
    apply_play_clock_event,
    apply_shift_event,
    fold_play_clock,
    game_closing_time,
    initial_shift_state,
    reconstruct_shifts,
    total_play_time_seconds,
)

BASE = dt.datetime(2024, 3, 2, 10, 0, 0)


def _at(seconds: float) -> dt.datetime:
    return BASE + dt.timedelta(seconds=seconds)


def _events(*rows_def):
    """(event_type, seconds[, player_id]) tuples -> normalized events, ids in list order."""
    raw = []
    for idx, item in enumerate(rows_def, start=1):
        et, sec = item[0], item[1]
        row = {"id": idx, "event_type": et, "event_time": _at(sec).isoformat() + "Z"}
        if len(item) > 2:
            row["player_id"] = item[2]
        raw.append(row)
    return normalize_events(raw)


def _ev(et, sec, player_id=None):
    return Event(id=None, event_type=et, event_time=_at(sec), player_id=player_id)


def should_reconstruct_single_shift():
    events = _events(
        ("player_on", 0, "p1"), ("play_start", 0), ("play_stop", 300), ("game_end", 300)
    )
    r = reconstruct_shifts("p1", events)
    assert r.shift_count == 1
    assert r.total_rink_time_seconds == 300
    assert r.shortest_shift == r.longest_shift == 300
    assert r.average_shift_time == 300
    assert r.longest_shift_start_time == BASE


def should_not_count_time_during_stoppages():
    events = _events(
        ("play_start", 0),
        ("player_on", 0, "p1"),
        ("play_stop", 100),
        ("player_off", 150, "p1"),
        ("play_start", 200),
        ("player_on", 250, "p1"),
        ("play_stop", 400),
    )
    r = reconstruct_shifts("p1", events)
    assert r.shift_count == 2
    assert r.total_rink_time_seconds == 250
    assert r.shortest_shift == 100
    assert r.longest_shift == 150
    assert r.average_shift_time == 125
    assert r.longest_shift_start_time == _at(250)


def should_start_on_rink_when_first_on_precedes_first_play_start():
    events = _events(("player_on", -30, "p1"), ("play_start", 0), ("play_stop", 60))
    state = initial_shift_state([e for e in events if e.is_player_event], events[1])
    assert state.is_on_rink
    r = reconstruct_shifts("p1", events)
    assert r.total_rink_time_seconds == 60


def should_start_off_rink_when_first_event_is_player_off():
    off = _ev("player_off", -10, "p1")
    assert not initial_shift_state([off], None).is_on_rink
    assert not initial_shift_state([], None).is_on_rink


def should_start_on_rink_without_any_play_start():
    on = _ev("player_on", 5, "p1")
    assert initial_shift_state([on], None).is_on_rink


@pytest.mark.parametrize(
    "state,event,expected_state,closes",
    [
        # play_start while on rink opens a shift
        (ShiftState(True, False, None), _ev("play_start", 10), ShiftState(True, True, _at(10)), False),
        # play_start while off rink only starts the clock
        (ShiftState(False, False, None), _ev("play_start", 10), ShiftState(False, True, None), False),
        # redundant play_start keeps the open shift start
        (ShiftState(True, True, _at(0)), _ev("play_start", 10), ShiftState(True, True, _at(0)), False),
        # play_stop closes an open shift
        (ShiftState(True, True, _at(0)), _ev("play_stop", 10), ShiftState(True, False, None), True),
        # play_stop while off rink
        (ShiftState(False, True, None), _ev("play_stop", 10), ShiftState(False, False, None), False),
        # player_on during play opens a shift
        (ShiftState(False, True, None), _ev("player_on", 10, "p1"), ShiftState(True, True, _at(10)), False),
        # player_on during stoppage
        (ShiftState(False, False, None), _ev("player_on", 10, "p1"), ShiftState(True, False, None), False),
        # duplicate player_on is ignored
        (ShiftState(True, True, _at(0)), _ev("player_on", 10, "p1"), ShiftState(True, True, _at(0)), False),
        # player_off during play closes the shift
        (ShiftState(True, True, _at(0)), _ev("player_off", 10, "p1"), ShiftState(False, True, None), True),
        # player_off during stoppage closes nothing
        (ShiftState(True, False, None), _ev("player_off", 10, "p1"), ShiftState(False, False, None), False),
        # other players' substitutions do not touch this state
        (ShiftState(True, True, _at(0)), _ev("player_off", 10, "p2"), ShiftState(True, True, _at(0)), False),
        # goals are ignored
        (ShiftState(True, True, _at(0)), _ev("goal_for", 10), ShiftState(True, True, _at(0)), False),
    ],
)
def should_follow_shift_transition_table(state, event, expected_state, closes):
    new_state, closed = apply_shift_event(state, event, "p1")
    assert new_state == expected_state
    if closes:
        assert closed == Shift("p1", _at(0), _at(10))
    else:
        assert closed is None


def should_close_trailing_shift_at_game_end():
    events = _events(("play_start", 0), ("player_on", 10, "p1"), ("game_end", 70), ("goal_for", 90))
    r = reconstruct_shifts("p1", events)
    assert r.total_rink_time_seconds == 60
    assert game_closing_time(events) == _at(70)


def should_close_trailing_shift_at_last_event_without_game_end():
    events = _events(("play_start", 0), ("player_on", 10, "p1"), ("goal_for", 45))
    r = reconstruct_shifts("p1", events)
    assert r.shifts == (Shift("p1", _at(10), _at(45)),)
    assert game_closing_time([]) is None


def should_not_produce_negative_duration_when_game_end_precedes_shift():
    events = _events(("game_end", 0), ("play_start", 5), ("player_on", 10, "p1"))
    r = reconstruct_shifts("p1", events)
    assert r.shift_count == 1
    assert r.total_rink_time_seconds == 0


def should_return_zeros_for_player_without_shifts():
    events = _events(("play_start", 0), ("play_stop", 60))
    r = reconstruct_shifts("ghost", events)
    assert r.shift_count == 0
    assert r.total_rink_time_seconds == 0
    assert r.average_shift_time == 0
    assert r.shortest_shift == r.longest_shift == 0
    assert r.longest_shift_start_time is None


def should_keep_earliest_shift_for_longest_ties():
    shifts = [Shift("p1", _at(0), _at(30)), Shift("p1", _at(100), _at(130))]
    r = ShiftReport.from_shifts("p1", shifts)
    assert r.longest_shift == r.shortest_shift == 30
    assert r.longest_shift_start_time == _at(0)


def should_round_average_shift_time():
    shifts = [Shift("p1", _at(0), _at(10)), Shift("p1", _at(20), _at(31))]
    assert ShiftReport.from_shifts("p1", shifts).average_shift_time == 10
    shifts = [Shift("p1", _at(0), _at(10)), Shift("p1", _at(20), _at(32))]
    assert ShiftReport.from_shifts("p1", shifts).average_shift_time == 11


def should_floor_fractional_durations():
    events = _events(("play_start", 0), ("player_on", 0.4, "p1"), ("play_stop", 10.2))
    assert reconstruct_shifts("p1", events).total_rink_time_seconds == 9


def should_keep_invariants_over_mixed_stream():
    events = _events(
        ("player_on", -5, "p1"),
        ("player_on", -5, "p2"),
        ("play_start", 0),
        ("player_off", 40, "p1"),
        ("player_on", 40, "p3"),
        ("play_stop", 60),
        ("play_start", 90),
        ("player_off", 100, "p2"),
        ("player_on", 100, "p1"),
        ("play_stop", 150),
        ("game_end", 150),
    )
    play_time = total_play_time_seconds(events)
    assert play_time == 120
    for pid in ("p1", "p2", "p3"):
        r = reconstruct_shifts(pid, events)
        assert r.total_rink_time_seconds == sum(s.duration_seconds for s in r.shifts)
        assert r.total_rink_time_seconds <= play_time
        if r.shift_count:
            assert r.shortest_shift <= r.average_shift_time <= r.longest_shift
    assert reconstruct_shifts("p1", events).total_rink_time_seconds == 40 + 50
    assert reconstruct_shifts("p2", events).total_rink_time_seconds == 60 + 10
    assert reconstruct_shifts("p3", events).total_rink_time_seconds == 20 + 60


def should_fold_play_clock_ignoring_redundant_and_orphan_events():
    events = _events(
        ("play_stop", -10),
        ("play_start", 0),
        ("play_start", 20),
        ("play_stop", 50),
        ("play_stop", 55),
        ("play_start", 100),
        ("game_end", 130),
    )
    intervals = fold_play_clock(events)
    assert [(i.start, i.end) for i in intervals] == [(_at(0), _at(50)), (_at(100), _at(130))]
    assert total_play_time_seconds(events) == 80


def should_ignore_stop_when_clock_is_not_running():
    state, closed = apply_play_clock_event(PlayClockState(), _ev("play_stop", 1))
    assert state == PlayClockState()
    assert closed is None


def should_resolve_roster_last_event_wins():
    events = _events(
        ("player_on", 0, "p1"),
        ("player_on", 0, "p2"),
        ("player_off", 30, "p1"),
        ("player_on", 30, "p3"),
        ("player_on", 60, "p1"),
        ("player_off", 60, "p1"),
    )
    assert roster_at(_at(-1), events) == set()
    assert roster_at(_at(10), events) == {"p1", "p2"}
    assert roster_at(_at(30), events) == {"p2", "p3"}
    assert roster_at(_at(60), events) == {"p2", "p3"}


def should_resolve_same_roster_as_two_separate_team_rosters():
    events = _events(
        ("player_on", 0, "h1"),
        ("player_on", 0, "a1"),
        ("player_on", 5, "h2"),
        ("player_off", 20, "a1"),
        ("player_on", 20, "a2"),
    )
    home = [e for e in events if not e.is_player_event or e.player_id.startswith("h")]
    away = [e for e in events if not e.is_player_event or e.player_id.startswith("a")]
    for sec in (0, 10, 20, 30):
        assert roster_at(_at(sec), events) == roster_at(_at(sec), home) | roster_at(_at(sec), away)
