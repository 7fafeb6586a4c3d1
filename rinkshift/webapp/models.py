from __future__ import annotations

from django.db import models


class Game(models.Model):
    name = models.CharField(max_length=255, null=True, blank=True)
    # Bumped whenever a substitution event of the game is inserted, edited or deleted.
    event_generation = models.IntegerField(default=0)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "games"


class GameEvent(models.Model):
    game = models.ForeignKey(Game, on_delete=models.CASCADE, related_name="events")
    event_type = models.CharField(max_length=32)
    event_time = models.DateTimeField()
    player_id = models.CharField(max_length=64, null=True, blank=True)
    team_side = models.CharField(max_length=16, null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "game_events"
        indexes = [
            models.Index(fields=["game", "event_time"], name="idx_event_game_time"),
            models.Index(fields=["game", "event_type"], name="idx_event_game_type"),
        ]
