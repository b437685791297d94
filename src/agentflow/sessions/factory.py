from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides factory functions for creating session backends by store name.
"""

from typing import Any, Mapping

from ..config import AgentflowConfig
from .base import Session
from .in_memory import InMemorySession
from .sqlite import SQLiteSession


def _option_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def create_session(
    store: str,
    session_id: str,
    *,
    options: Mapping[str, Any] | None = None,
    config: AgentflowConfig | None = None,
) -> Session:
    """
    Create an unopened session for `store`.

    Args:
        store: Backend name (`memory`, `sqlite`, `postgres`, `redis`).
        session_id: Conversation identifier.
        options: Backend options (`path`; `dsn`, `pool_min`, `pool_max`, `ssl`,
            `table`; `url`, `max_items`, `ttl_s`); missing values fall back to `config`.
        config: Process defaults; read from the environment when omitted.

    Raises:
        ValueError: If the store is unknown or required settings are missing.
    """
    cfg = config or AgentflowConfig.from_env()
    opts = dict(options or {})
    backend = store.strip().lower()

    if backend in ("mem", "memory", "inmemory", "in_memory"):
        return InMemorySession(session_id)

    if backend in ("sqlite", "sqlite3"):
        return SQLiteSession(session_id, path=str(opts.get("path") or cfg.sqlite_path))

    if backend in ("pg", "postgres", "postgresql"):
        from .postgres import PostgresSession

        dsn = opts.get("dsn") or cfg.postgres_dsn
        if not dsn:
            raise ValueError(
                "postgres sessions need a DSN (store config 'dsn' or AGENTFLOW_POSTGRES_DSN)"
            )
        return PostgresSession(
            session_id,
            dsn=str(dsn),
            pool_min=int(opts.get("pool_min", 1)),
            pool_max=int(opts.get("pool_max", 10)),
            ssl=_option_bool(opts.get("ssl", False)),
            table=str(opts.get("table", "agent_session_items")),
        )

    if backend in ("redis",):
        from .redis import RedisSession

        ttl = opts.get("ttl_s")
        return RedisSession(
            session_id,
            url=str(opts.get("url") or cfg.redis_url),
            max_items=int(opts.get("max_items", 2000)),
            ttl_s=int(ttl) if ttl is not None else None,
        )

    raise ValueError(f"Unknown session store: {store}")


def create_session_from_env(session_id: str) -> Session:
    """Create a session for `AGENTFLOW_SESSION_STORE` and its related settings."""
    cfg = AgentflowConfig.from_env()
    return create_session(cfg.session_store, session_id, config=cfg)
