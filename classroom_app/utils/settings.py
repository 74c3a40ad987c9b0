"""Runtime settings read from the environment (and an optional ``.env`` file)."""

from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv

from classroom_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT


@dataclass(frozen=True, slots=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    database_url: str | None = None
    log_level: str = "INFO"


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        host=os.getenv("CLASSROOM_APP_HOST", DEFAULT_HOST),
        port=int(os.getenv("CLASSROOM_APP_PORT", str(DEFAULT_PORT))),
        database_url=os.getenv("CLASSROOM_APP_DATABASE_URL") or None,
        log_level=os.getenv("CLASSROOM_APP_LOG_LEVEL", "INFO").upper(),
    )
