from __future__ import annotations

import os

from rinkshift.config import load_config

cfg = load_config(os.environ.get("RINKSHIFT_DB_CONFIG") or None)

DATABASES = {"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": cfg.db.name}}

# Only the ORM is used; no request handling, sessions or templates.
SECRET_KEY = os.environ.get("RINKSHIFT_SECRET", "rinkshift-orm-only")
DEBUG = False
ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "rinkshift.webapp.apps.RinkshiftWebappConfig",
]

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"

USE_TZ = False
TIME_ZONE = "UTC"
