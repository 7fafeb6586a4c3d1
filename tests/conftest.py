from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_path()


@pytest.fixture(scope="session")
def db_test_config_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """
    Create a sqlite-backed config.json for the Django event store.

    Django settings are global for the Python process, so tests share a single config.
    """
    root = tmp_path_factory.mktemp("rinkshift_db")
    db_path = root / "rinkshift.sqlite3"
    cfg_path = root / "config.json"
    cfg_path.write_text(
        json.dumps({"db": {"engine": "sqlite3", "name": str(db_path)}}), encoding="utf-8"
    )

    os.environ.setdefault("RINKSHIFT_DB_CONFIG", str(cfg_path))
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "rinkshift.webapp.settings")
    os.environ.setdefault("RINKSHIFT_SECRET", "rinkshift-test-secret")
    return cfg_path


@pytest.fixture(scope="session")
def orm_modules(db_test_config_path: Path):
    from rinkshift.webapp import orm

    orm.setup_django(config_path=str(db_test_config_path))
    orm.ensure_schema()

    from rinkshift.webapp import models as m

    return orm, m


def _reset_db(m) -> None:
    from django.db import connection, transaction

    with transaction.atomic():
        m.GameEvent.objects.all().delete()
        m.Game.objects.all().delete()
        if connection.vendor == "sqlite":
            with connection.cursor() as cursor:
                cursor.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name='sqlite_sequence'"
                )
                if cursor.fetchone():
                    cursor.execute("DELETE FROM sqlite_sequence;")


@pytest.fixture()
def django_store(orm_modules, db_test_config_path: Path):
    from rinkshift.store.django_store import DjangoEventStore

    _orm, m = orm_modules
    _reset_db(m)
    return DjangoEventStore(config_path=str(db_test_config_path))
