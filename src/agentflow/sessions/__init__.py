from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module exposes conversation session backends and their factory.
"""

from .base import Session
from .factory import create_session, create_session_from_env
from .in_memory import InMemorySession
from .sqlite import SQLiteSession

__all__ = [
    "InMemorySession",
    "SQLiteSession",
    "Session",
    "create_session",
    "create_session_from_env",
]
