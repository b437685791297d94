from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module reads process-level defaults from `AGENTFLOW_*` environment variables.
"""

import os
from dataclasses import dataclass

DEFAULT_MAX_TURNS = 10


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {v!r}") from e


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {v!r}") from e


@dataclass(frozen=True, slots=True)
class AgentflowConfig:
    """
    Process-level defaults.

    Attributes:
        default_model: Model name used when neither the agent nor the run names one.
        max_turns: Default turn limit of a run.
        session_store: Default session backend (`memory`, `sqlite`, `postgres`, `redis`).
        sqlite_path: Database file of the SQLite session backend.
        postgres_dsn: DSN of the Postgres session backend.
        redis_url: URL of the Redis session backend.
        callback_timeout_s: Timeout of one HTTP callback attempt.
        log_level: Level name passed to `logging.basicConfig` by the CLI.
    """

    default_model: str | None = None
    max_turns: int = DEFAULT_MAX_TURNS
    session_store: str = "memory"
    sqlite_path: str = "agentflow_sessions.sqlite3"
    postgres_dsn: str | None = None
    redis_url: str = "redis://localhost:6379/0"
    callback_timeout_s: float = 10.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "AgentflowConfig":
        max_turns = _env_int("AGENTFLOW_MAX_TURNS", DEFAULT_MAX_TURNS)
        if max_turns < 1:
            raise ValueError("AGENTFLOW_MAX_TURNS must be at least 1")
        return cls(
            default_model=os.getenv("AGENTFLOW_DEFAULT_MODEL") or None,
            max_turns=max_turns,
            session_store=os.getenv("AGENTFLOW_SESSION_STORE", "memory").strip().lower(),
            sqlite_path=os.getenv("AGENTFLOW_SQLITE_PATH", "agentflow_sessions.sqlite3"),
            postgres_dsn=os.getenv("AGENTFLOW_POSTGRES_DSN") or None,
            redis_url=os.getenv("AGENTFLOW_REDIS_URL", "redis://localhost:6379/0"),
            callback_timeout_s=_env_float("AGENTFLOW_CALLBACK_TIMEOUT_S", 10.0),
            log_level=os.getenv("AGENTFLOW_LOG_LEVEL", "WARNING").strip().upper(),
        )
