from .base import EventStore, strip_goal_snapshot
from .memory import InMemoryEventStore

__all__ = ["EventStore", "InMemoryEventStore", "strip_goal_snapshot"]
