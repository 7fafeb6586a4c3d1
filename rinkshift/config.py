"""YAML configuration for rinkshift CLIs and the Django-backed event store.

A config file looks like::

    variant: two-team        # or "single"
    log_level: INFO
    db:
      engine: sqlite3
      name: /var/lib/rinkshift/events.sqlite3

JSON is valid YAML, so a ``config.json`` with the same keys also works.
The file is located from an explicit path, ``$RINKSHIFT_CONFIG``, or
``./rinkshift.yaml`` in that order. A missing file yields the defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from rinkshift.errors import ConfigError

CONFIG_ENV_VAR = "RINKSHIFT_CONFIG"
DEFAULT_CONFIG_NAME = "rinkshift.yaml"
DEFAULT_DB_NAME = "rinkshift.sqlite3"

VARIANTS = ("single", "two-team")
DB_ENGINES = {"sqlite", "sqlite3"}


@dataclass
class DbConfig:
    engine: str = "sqlite3"
    name: str = DEFAULT_DB_NAME


@dataclass
class RinkshiftConfig:
    variant: str = "single"
    log_level: str = "INFO"
    db: DbConfig = field(default_factory=DbConfig)
    path: Optional[Path] = None


def resolve_config_path(path: Union[str, Path, None] = None) -> Optional[Path]:
    if path:
        return Path(path)
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env)
    local = Path.cwd() / DEFAULT_CONFIG_NAME
    if local.exists():
        return local
    return None


def load_config_dict(path: Union[str, Path]) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a mapping")
    return data


def normalize_variant(raw: Any) -> str:
    s = str(raw or "single").strip().lower().replace("_", "-")
    if s in ("two", "two-team", "twoteam", "match"):
        return "two-team"
    if s in ("single", "single-team", "one", "session"):
        return "single"
    raise ConfigError(f"Unknown variant '{raw}', expected one of {', '.join(VARIANTS)}")


def config_from_dict(data: Dict[str, Any], path: Optional[Path] = None) -> RinkshiftConfig:
    dbcfg = data.get("db") or {}
    if not isinstance(dbcfg, dict):
        raise ConfigError("'db' must be a mapping")
    engine = str(dbcfg.get("engine") or "sqlite3").strip().lower()
    if engine not in DB_ENGINES:
        raise ConfigError(f"Unsupported db engine '{engine}'")
    name = str(dbcfg.get("name") or DEFAULT_DB_NAME)
    if path is not None and name != ":memory:" and not os.path.isabs(name):
        name = str(path.parent / name)
    return RinkshiftConfig(
        variant=normalize_variant(data.get("variant")),
        log_level=str(data.get("log_level") or "INFO").upper(),
        db=DbConfig(engine="sqlite3", name=name),
        path=path,
    )


def load_config(path: Union[str, Path, None] = None) -> RinkshiftConfig:
    """Load configuration, falling back to defaults when no file is found."""
    cfg_path = resolve_config_path(path)
    if cfg_path is None:
        return RinkshiftConfig()
    return config_from_dict(load_config_dict(cfg_path), path=cfg_path)
