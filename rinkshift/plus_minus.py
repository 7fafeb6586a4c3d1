"""Plus/minus attribution from goal events.

The on-surface roster for each goal comes from the goal's cached snapshot
(``metadata["rink_players"]``) when present, otherwise from
:func:`rinkshift.roster.roster_at` over the live substitution history.

Which goals count for or against a player is decided by a side-resolution
strategy, so the same aggregator serves single-team sessions
(``goal_for``/``goal_against``) and two-team matches (``goal_home``/``goal_away``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from rinkshift.events import (
    GOAL_AGAINST,
    GOAL_AWAY,
    GOAL_FOR,
    GOAL_HOME,
    SNAPSHOT_PLAYERS_KEY,
    Event,
    normalize_team_side,
)
from rinkshift.log import get_logger
from rinkshift.roster import roster_at

logger = get_logger(__name__)

HOME = "home"
AWAY = "away"


class SideResolver(Protocol):
    """Maps (goal, player) to +1, -1, or 0 (not attributable)."""

    def goal_sign(self, goal: Event, player_id: Any) -> int: ...

    def counts_goal(self, goal: Event) -> bool: ...


class SingleTeamSides:
    """One tracked team: goal_for is +1 and goal_against is -1 for everyone on the ice."""

    variant = "single"

    def counts_goal(self, goal: Event) -> bool:
        return goal.event_type in (GOAL_FOR, GOAL_AGAINST)

    def goal_sign(self, goal: Event, player_id: Any) -> int:
        if goal.event_type == GOAL_FOR:
            return 1
        if goal.event_type == GOAL_AGAINST:
            return -1
        return 0


class TwoTeamSides:
    """Both teams tracked: compare the player's side with the scoring side."""

    variant = "two-team"

    def __init__(self, player_sides: Mapping[Any, Any]):
        self.player_sides: dict[Any, Optional[str]] = {
            pid: normalize_team_side(side) for pid, side in player_sides.items()
        }

    @staticmethod
    def scoring_side(goal: Event) -> Optional[str]:
        if goal.event_type == GOAL_HOME:
            return HOME
        if goal.event_type == GOAL_AWAY:
            return AWAY
        if goal.team_side in (HOME, AWAY):
            return goal.team_side
        return None

    def counts_goal(self, goal: Event) -> bool:
        return self.scoring_side(goal) is not None

    def goal_sign(self, goal: Event, player_id: Any) -> int:
        scoring = self.scoring_side(goal)
        side = self.player_sides.get(player_id)
        if scoring is None or side is None:
            return 0
        return 1 if side == scoring else -1


@dataclass
class PlusMinus:
    player_id: Any
    plus_minus: int = 0
    goals_for_on_ice: int = 0
    goals_against_on_ice: int = 0

    def add(self, sign: int) -> None:
        if sign > 0:
            self.goals_for_on_ice += 1
        elif sign < 0:
            self.goals_against_on_ice += 1
        self.plus_minus += sign


def cached_rink_players(goal: Event) -> Optional[set[Any]]:
    """The snapshot roster of a goal, or None when no snapshot is cached."""
    md = goal.metadata
    if not md or SNAPSHOT_PLAYERS_KEY not in md:
        return None
    players = md.get(SNAPSHOT_PLAYERS_KEY)
    if players is None:
        return None
    return set(players)


def goal_roster(goal: Event, events: Sequence[Event]) -> set[Any]:
    cached = cached_rink_players(goal)
    if cached is not None:
        return cached
    logger.debug("No snapshot on goal %s, resolving roster live", goal.id)
    return roster_at(goal.event_time, events)


def compute_plus_minus(
    player_ids: Iterable[Any],
    events: Sequence[Event],
    sides: Optional[SideResolver] = None,
) -> dict[Any, PlusMinus]:
    """
    Attribute +1/-1 per on-surface player per goal, in chronological order.

    @param player_ids: the stats subjects; players outside this set are ignored.
    @param events: normalized game stream.
    @param sides: side-resolution strategy, :class:`SingleTeamSides` by default.
    """
    resolver: SideResolver = sides if sides is not None else SingleTeamSides()
    out: dict[Any, PlusMinus] = {pid: PlusMinus(pid) for pid in player_ids}

    for goal in sorted((e for e in events if e.is_goal), key=lambda e: e.sort_key):
        if not resolver.counts_goal(goal):
            continue
        for pid in goal_roster(goal, events):
            pm = out.get(pid)
            if pm is None:
                continue
            pm.add(resolver.goal_sign(goal, pid))
    return out
