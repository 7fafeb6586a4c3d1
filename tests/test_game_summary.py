import datetime as dt

import pytest

from rinkshift.errors import MalformedEventError
from rinkshift.plus_minus import TwoTeamSides
from rinkshift.summary import (
    discover_roster,
    format_seconds_hmmss,
    format_seconds_mmss,
    normalize_roster,
    summarize_game,
)
from rinkshift.events import normalize_events

BASE = dt.datetime(2024, 3, 2, 10, 0, 0)


def _t(seconds: float) -> str:
    return (BASE + dt.timedelta(seconds=seconds)).isoformat() + "Z"


def _single_team_game():
    return [
        {"id": 1, "event_type": "player_on", "event_time": _t(-10), "player_id": "p1"},
        {"id": 2, "event_type": "play_start", "event_time": _t(0)},
        {"id": 3, "event_type": "player_on", "event_time": _t(60), "player_id": "p2"},
        {"id": 4, "event_type": "goal_for", "event_time": _t(90), "metadata": {"rink_players": ["p1", "p2"]}},
        {"id": 5, "event_type": "player_off", "event_time": _t(120), "player_id": "p1"},
        {"id": 6, "event_type": "play_stop", "event_time": _t(180)},
        {"id": 7, "event_type": "player_positions", "event_time": _t(181)},
        {"id": 8, "event_type": "goal_against", "event_time": _t(185)},
        {"id": 9, "event_type": "game_end", "event_time": _t(200)},
    ]


def should_format_seconds():
    assert format_seconds_hmmss(0) == "0:00:00"
    assert format_seconds_hmmss(3725) == "1:02:05"
    assert format_seconds_hmmss("bad") == "0:00:00"
    assert format_seconds_hmmss(-5) == "0:00:00"
    assert format_seconds_mmss(125) == "2:05"
    assert format_seconds_mmss(3725) == "62:05"
    assert format_seconds_mmss(None) == "0:00"


def should_summarize_players_sorted_by_rink_time():
    summary = summarize_game(_single_team_game())
    assert [p.player_id for p in summary.players] == ["p1", "p2"]
    p1, p2 = summary.players
    assert p1.total_rink_time_seconds == 120
    assert p1.shift_count == 1
    assert p1.longest_shift_start_elapsed_seconds == 0
    assert p1.goals_for_on_ice == 1
    assert p2.total_rink_time_seconds == 120
    assert p2.longest_shift_start_elapsed_seconds == 60
    # goal_against at 185 resolves live: only p2 remains on
    assert p1.plus_minus == 1
    assert p2.plus_minus == 0
    assert p2.goals_against_on_ice == 1


def should_compute_game_totals():
    totals = summarize_game(_single_team_game()).totals
    assert totals.total_play_time_seconds == 180
    assert totals.score == {"for": 1, "against": 1}
    assert totals.goal_count == 2
    assert totals.first_play_start == BASE
    d = totals.to_dict()
    assert d["formatted_total_play_time"] == "3:00"
    assert d["game_end"] == (BASE + dt.timedelta(seconds=200)).isoformat()


def should_keep_roster_order_for_equal_rink_time():
    summary = summarize_game(_single_team_game(), ["p2", "p1", "p9"])
    assert [p.player_id for p in summary.players] == ["p2", "p1", "p9"]
    assert summary.players[-1].shift_count == 0
    assert summary.players[-1].longest_shift_start_time is None


def should_serialize_player_summary():
    summary = summarize_game(_single_team_game(), {"p1": {"name": "Ann", "team_side": "home"}})
    d = summary.players[0].to_dict()
    assert d["name"] == "Ann"
    assert d["team_side"] == "home"
    assert d["formatted_time"] == "0:02:00"
    assert d["formatted_longest_shift_start_time"] == "0:00"
    assert d["longest_shift_start_time"] == BASE.isoformat()
    assert summary.to_dict()["totals"]["goal_count"] == 2


def should_raise_for_malformed_timestamps():
    raw = _single_team_game() + [{"id": 99, "event_type": "play_stop", "event_time": "??"}]
    with pytest.raises(MalformedEventError):
        summarize_game(raw)


def should_normalize_roster_inputs():
    assert normalize_roster(["a", "b"]) == {"a": {}, "b": {}}
    assert normalize_roster({"a": "home", "b": None}) == {"a": {"team_side": "home"}, "b": {}}
    assert normalize_roster([{"id": 1, "name": "x"}, {"player_id": 2}, {"name": "skip"}]) == {
        1: {"name": "x"},
        2: {},
    }
    assert normalize_roster(None) == {}


def should_discover_roster_from_substitutions_and_snapshots():
    events = normalize_events(
        [
            {"id": 1, "event_type": "player_on", "event_time": _t(0), "player_id": "b", "team_side": "away"},
            {"id": 2, "event_type": "goal_away", "event_time": _t(5), "metadata": {"rink_players": ["z", "b"]}},
            {"id": 3, "event_type": "player_on", "event_time": _t(6), "player_id": "a"},
        ]
    )
    assert discover_roster(events) == {"b": {"team_side": "away"}, "z": {}, "a": {}}


def _two_team_game():
    return [
        {"id": 1, "event_type": "player_on", "event_time": _t(-5), "player_id": "7", "team_side": "home"},
        {"id": 2, "event_type": "player_on", "event_time": _t(-5), "player_id": "7", "team_side": "away"},
        {"id": 3, "event_type": "play_start", "event_time": _t(0)},
        {"id": 4, "event_type": "player_on", "event_time": _t(-5), "player_id": "9", "team_side": "home"},
        {"id": 5, "event_type": "goal_home", "event_time": _t(30)},
        {"id": 6, "event_type": "player_off", "event_time": _t(40), "player_id": "9", "team_side": "home"},
        {"id": 7, "event_type": "goal_away", "event_time": _t(50)},
        {"id": 8, "event_type": "play_stop", "event_time": _t(100)},
    ]


def should_summarize_two_team_game_from_roster_sides():
    roster = {"9": "home", "11": "away"}
    summary = summarize_game(_two_team_game(), roster, variant="two-team")
    by_id = {p.player_id: p for p in summary.players}
    assert by_id["9"].total_rink_time_seconds == 40
    assert by_id["9"].plus_minus == 1
    assert by_id["11"].plus_minus == 0
    assert summary.totals.score == {"home": 1, "away": 1}


def should_use_explicit_side_resolver():
    sides = TwoTeamSides({"9": "away"})
    summary = summarize_game(_two_team_game(), ["9"], sides=sides)
    assert summary.players[0].plus_minus == -1
    assert summary.players[0].total_rink_time_seconds == 40
