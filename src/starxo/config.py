"""Runtime configuration read from ``STARXO_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from .countdown import COUNTDOWN_SECONDS
from .matchmaking import AVATAR_INTERVAL, MATCH_DELAY, REVEAL_DELAY


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    match_delay: float = MATCH_DELAY
    reveal_delay: float = REVEAL_DELAY
    avatar_interval: float = AVATAR_INTERVAL
    countdown_seconds: int = COUNTDOWN_SECONDS
    session_ttl: float = 60 * 30  # 30 minutes


@lru_cache
def get_settings() -> Settings:
    env = os.environ
    return Settings(
        host=env.get("STARXO_HOST", "0.0.0.0"),
        port=int(env.get("STARXO_PORT", "8000")),
        log_level=env.get("STARXO_LOG_LEVEL", "INFO").upper(),
        match_delay=float(env.get("STARXO_MATCH_DELAY", MATCH_DELAY)),
        reveal_delay=float(env.get("STARXO_REVEAL_DELAY", REVEAL_DELAY)),
        avatar_interval=float(env.get("STARXO_AVATAR_INTERVAL", AVATAR_INTERVAL)),
        countdown_seconds=int(env.get("STARXO_COUNTDOWN_SECONDS", COUNTDOWN_SECONDS)),
        session_ttl=float(env.get("STARXO_SESSION_TTL", 60 * 30)),
    )
