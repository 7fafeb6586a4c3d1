from __future__ import annotations

import os
from typing import Optional, Type

SETTINGS_MODULE = "rinkshift.webapp.settings"


def setup_django(*, config_path: Optional[str] = None) -> None:
    if config_path:
        os.environ["RINKSHIFT_DB_CONFIG"] = str(config_path)

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", SETTINGS_MODULE)

    import django

    # Idempotent: calling setup() multiple times is safe (it no-ops once configured).
    django.setup()


def _import_models():
    from rinkshift.webapp import models as m

    return m


def _all_models() -> list[Type]:
    m = _import_models()
    return [m.Game, m.GameEvent]


def ensure_schema() -> None:
    setup_django()

    from django.db import connection

    existing_tables = set(connection.introspection.table_names())
    models_to_create = [m for m in _all_models() if m._meta.db_table not in existing_tables]

    if models_to_create:
        with connection.schema_editor() as schema_editor:
            for model in models_to_create:
                schema_editor.create_model(model)

    # Add missing columns for older databases.
    for model in _all_models():
        table = model._meta.db_table
        if table not in set(connection.introspection.table_names()):
            continue

        with connection.cursor() as cursor:
            desc = connection.introspection.get_table_description(cursor, table)
        existing_cols = {c.name for c in desc or []}
        missing_fields = [
            f for f in model._meta.local_fields if getattr(f, "column", None) not in existing_cols
        ]
        if not missing_fields:
            continue

        with connection.schema_editor() as schema_editor:
            for field in missing_fields:
                schema_editor.add_field(model, field)


def close_connections() -> None:
    from django.db import close_old_connections

    close_old_connections()
