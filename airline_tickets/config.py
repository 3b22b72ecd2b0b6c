"""Environment driven settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .database import DEFAULT_DB_URL

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    db_url: str = DEFAULT_DB_URL
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    echo_sql: bool = False


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read ``AIRLINE_TICKETS_*`` variables, falling back to the defaults."""

    env = os.environ if environ is None else environ
    return Settings(
        db_url=env.get("AIRLINE_TICKETS_DB_URL", DEFAULT_DB_URL),
        log_level=env.get("AIRLINE_TICKETS_LOG_LEVEL", "WARNING").upper(),
        log_file=env.get("AIRLINE_TICKETS_LOG_FILE") or None,
        echo_sql=env.get("AIRLINE_TICKETS_ECHO_SQL", "").strip().lower() in _TRUTHY,
    )
