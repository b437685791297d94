from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides an offline model that echoes the latest user message, used for dry runs.
"""

import json
import uuid
from typing import Any, AsyncIterator

from .interface import Model, ModelProvider
from .types import (
    InputItem,
    ModelRequest,
    ModelResponse,
    ResponseStreamEvent,
    StreamCompleted,
    Usage,
)


def _last_user_text(items: list[InputItem]) -> str:
    for item in reversed(items):
        if item.get("role") != "user":
            continue
        content = item.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            texts = [
                part.get("text", "")
                for part in content
                if isinstance(part, dict) and part.get("type") in ("input_text", "text")
            ]
            return " ".join(t for t in texts if t)
    return ""


class EchoModel(Model):
    """Answers every request with the latest user text, without calling a provider."""

    def __init__(self, name: str = "echo", *, prefix: str = "") -> None:
        self.name = name
        self.prefix = prefix

    def _reply(self, request: ModelRequest) -> str:
        text = f"{self.prefix}{_last_user_text(request.input)}"
        if request.output_schema is not None:
            return json.dumps({"echo": text})
        return text

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        text = self._reply(request)
        message: dict[str, Any] = {
            "type": "message",
            "id": f"msg_{uuid.uuid4().hex[:12]}",
            "role": "assistant",
            "status": "completed",
            "content": [{"type": "output_text", "text": text, "annotations": []}],
        }
        words = len(text.split())
        return ModelResponse(
            output=[message],
            usage=Usage(requests=1, output_tokens=words, total_tokens=words),
            response_id=f"resp_{uuid.uuid4().hex[:12]}",
        )

    async def stream_response(
        self, request: ModelRequest
    ) -> AsyncIterator[ResponseStreamEvent | StreamCompleted]:
        response = await self.get_response(request)
        text = response.output[0]["content"][0]["text"]
        for word in text.split(" "):
            yield {"type": "response.output_text.delta", "delta": word + " "}
        yield StreamCompleted(response=response)


class EchoModelProvider(ModelProvider):
    def __init__(self, *, prefix: str = "") -> None:
        self.prefix = prefix

    def get_model(self, model_name: str | None) -> Model:
        return EchoModel(model_name or "echo", prefix=self.prefix)
