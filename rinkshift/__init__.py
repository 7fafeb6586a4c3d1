"""Shift and scoring reconstruction for event-logged hockey games.

Given the event log of one game (substitutions, play-clock start/stop, goals,
game end), rinkshift reconstructs per-player rink time and shifts, caches who
was on the surface for every goal, and derives plus/minus.

@see @ref rinkshift.summary.summarize_game "summarize_game" for the main entry point.
@see @ref rinkshift.goal_cache.rebuild_goal_snapshots "rebuild_goal_snapshots" for the cache pass.
"""

from rinkshift.errors import (
    ConfigError,
    EventNotFoundError,
    MalformedEventError,
    RinkshiftError,
    StaleSnapshotError,
)
from rinkshift.events import Event, normalize_events
from rinkshift.goal_cache import build_goal_snapshots, rebuild_goal_snapshots, record_goal
from rinkshift.plus_minus import SingleTeamSides, TwoTeamSides, compute_plus_minus
from rinkshift.roster import roster_at
from rinkshift.shifts import reconstruct_shifts
from rinkshift.summary import GameStatsSummary, PlayerStatsSummary, summarize_game

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Event",
    "EventNotFoundError",
    "GameStatsSummary",
    "MalformedEventError",
    "PlayerStatsSummary",
    "RinkshiftError",
    "SingleTeamSides",
    "StaleSnapshotError",
    "TwoTeamSides",
    "build_goal_snapshots",
    "compute_plus_minus",
    "normalize_events",
    "rebuild_goal_snapshots",
    "reconstruct_shifts",
    "record_goal",
    "roster_at",
    "summarize_game",
]
