"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str
    admin_token: str | None
    optimise_unassigned_topics: bool
    rectify_conflicts: bool
    recent_sessions_limit: int
    event_history_limit: int
    seed_demo_session: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; tests override with dataclasses.replace."""
    return Settings(
        app_name=os.getenv("APP_NAME", "OpenSpace Scheduler"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        database_path=Path(os.getenv("DATABASE_PATH", "data/openspace.db")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        optimise_unassigned_topics=_env_bool("OPTIMISE_UNASSIGNED_TOPICS", False),
        rectify_conflicts=_env_bool("RECTIFY_CONFLICTS", True),
        recent_sessions_limit=_env_int("RECENT_SESSIONS_LIMIT", 10),
        event_history_limit=_env_int("EVENT_HISTORY_LIMIT", 200),
        seed_demo_session=_env_bool("SEED_DEMO_SESSION", True),
    )
