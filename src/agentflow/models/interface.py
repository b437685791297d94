from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the model and model-provider contracts used by the run loop.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from .types import ModelRequest, ModelResponse, ResponseStreamEvent, StreamCompleted


class Model(ABC):
    """
    Black-box model capability.

    Subclasses implement `get_response`; streaming falls back to a single
    `StreamCompleted` element unless `stream_response` is overridden.
    """

    @abstractmethod
    async def get_response(self, request: ModelRequest) -> ModelResponse:
        """Run one model call and return its complete response."""

    async def stream_response(
        self, request: ModelRequest
    ) -> AsyncIterator[ResponseStreamEvent | StreamCompleted]:
        """
        Stream raw provider events followed by exactly one `StreamCompleted`.

        Args:
            request: Normalized model call.
        """
        response = await self.get_response(request)
        yield StreamCompleted(response=response)


class ModelProvider(ABC):
    """Resolves model names to `Model` instances."""

    @abstractmethod
    def get_model(self, model_name: str | None) -> Model:
        """Return the model for `model_name` (`None` selects the provider default)."""


class MultiProvider(ModelProvider):
    """
    Routes `prefix/model` names to registered providers.

    Names without a registered prefix go to the default provider unchanged.
    """

    def __init__(
        self,
        default: ModelProvider,
        providers: dict[str, ModelProvider] | None = None,
    ) -> None:
        self.default = default
        self.providers: dict[str, ModelProvider] = dict(providers or {})

    def register(self, prefix: str, provider: ModelProvider) -> None:
        self.providers[prefix] = provider

    def get_model(self, model_name: str | None) -> Model:
        if model_name and "/" in model_name:
            prefix, _, name = model_name.partition("/")
            provider = self.providers.get(prefix)
            if provider is not None:
                return provider.get_model(name or None)
        return self.default.get_model(model_name)
