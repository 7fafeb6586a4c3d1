from __future__ import annotations

from django.apps import AppConfig


class RinkshiftWebappConfig(AppConfig):
    name = "rinkshift.webapp"
    label = "rinkshift"
    default_auto_field = "django.db.models.AutoField"
