from __future__ import annotations

from typing import Any, Optional


class RinkshiftError(Exception):
    """Base class for all errors raised by rinkshift."""


class MalformedEventError(RinkshiftError):
    """An event cannot be used for reconstruction (bad timestamp or type)."""

    def __init__(self, message: str, *, event_id: Any = None, value: Any = None):
        self.event_id = event_id
        self.value = value
        if event_id is not None:
            message = f"{message} (event {event_id!r})"
        super().__init__(message)


class StaleSnapshotError(RinkshiftError):
    """A goal snapshot write was computed from an outdated set of events."""

    def __init__(self, game_id: Any, expected: int, actual: int):
        self.game_id = game_id
        self.expected = int(expected)
        self.actual = int(actual)
        super().__init__(
            f"Events of game {game_id!r} changed during recomputation "
            f"(generation {self.expected} != {self.actual})"
        )


class EventNotFoundError(RinkshiftError):
    def __init__(self, event_id: Any, game_id: Optional[Any] = None):
        self.event_id = event_id
        self.game_id = game_id
        super().__init__(f"No such event: {event_id!r}")


class ConfigError(RinkshiftError):
    pass
