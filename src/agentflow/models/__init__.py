from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module exposes model contracts, settings, and provider routing.
"""

from .echo import EchoModel, EchoModelProvider
from .interface import Model, ModelProvider, MultiProvider
from .types import (
    InputItem,
    JSONObject,
    JSONSchema,
    JSONValue,
    ModelRequest,
    ModelResponse,
    ModelSettings,
    OutputItem,
    ReasoningSettings,
    ResponseStreamEvent,
    StreamCompleted,
    ToolDefinition,
    Usage,
)

__all__ = [
    "EchoModel",
    "EchoModelProvider",
    "InputItem",
    "JSONObject",
    "JSONSchema",
    "JSONValue",
    "Model",
    "ModelProvider",
    "ModelRequest",
    "ModelResponse",
    "ModelSettings",
    "MultiProvider",
    "OutputItem",
    "ReasoningSettings",
    "ResponseStreamEvent",
    "StreamCompleted",
    "ToolDefinition",
    "Usage",
]
