from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_PORT = 3001
DEFAULT_FRONTEND_ORIGIN = "http://localhost:3000"
DEFAULT_DB_NAME = "wtc"

_REQUIRED = (
    "MONGO_URI",
    "SESSION_SECRET",
    "DISCORD_CLIENT_ID",
    "DISCORD_CLIENT_SECRET",
    "DISCORD_CALLBACK_URL",
)


@dataclass(frozen=True)
class Settings:
    mongo_uri: str
    mongo_db_name: str
    session_secret: str
    discord_client_id: str
    discord_client_secret: str
    discord_callback_url: str
    frontend_origin: str = DEFAULT_FRONTEND_ORIGIN
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build `Settings` from the environment.

    Raises RuntimeError naming every required variable that is unset.
    """

    env = os.environ if environ is None else environ

    missing = [name for name in _REQUIRED if not env.get(name)]
    if missing:
        raise RuntimeError(
            "Missing required environment variables: " + ", ".join(missing)
        )

    return Settings(
        mongo_uri=env["MONGO_URI"],
        mongo_db_name=env.get("MONGO_DB_NAME") or DEFAULT_DB_NAME,
        session_secret=env["SESSION_SECRET"],
        discord_client_id=env["DISCORD_CLIENT_ID"],
        discord_client_secret=env["DISCORD_CLIENT_SECRET"],
        discord_callback_url=env["DISCORD_CALLBACK_URL"],
        frontend_origin=env.get("FRONTEND_ORIGIN") or DEFAULT_FRONTEND_ORIGIN,
        port=int(env.get("PORT") or DEFAULT_PORT),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
