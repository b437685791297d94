"""
Structured output schemas for agents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..models.types import JSONSchema
from .errors import ModelBehaviorError


class AgentOutputSchemaBase(ABC):
    """Contract for agent output types: a JSON schema plus JSON text validation."""

    @abstractmethod
    def name(self) -> str:
        """Schema name sent to the model."""

    @abstractmethod
    def json_schema(self) -> JSONSchema:
        pass

    @abstractmethod
    def validate_json(self, text: str) -> Any:
        """
        Parse and validate model output text.

        Raises:
            ModelBehaviorError: If the text is not valid for this schema.
        """

    def is_strict_json_schema(self) -> bool:
        return True


class AgentOutputSchema(AgentOutputSchemaBase):
    """
    Output schema derived from a Python type through pydantic.

    Non-object types are wrapped in `{"response": ...}` so the model always
    returns a JSON object.
    """

    _WRAPPER_KEY = "response"

    def __init__(self, output_type: type[Any], *, strict: bool = True) -> None:
        self.output_type = output_type
        self.strict = strict
        self._is_wrapped = not (
            get_origin(output_type) is None
            and isinstance(output_type, type)
            and (issubclass(output_type, BaseModel) or issubclass(output_type, dict))
        )
        if self._is_wrapped:
            self._adapter: TypeAdapter[Any] = TypeAdapter(
                dict[str, output_type]  # type: ignore[valid-type]
            )
            inner = TypeAdapter(output_type).json_schema()
            self._schema: JSONSchema = {
                "type": "object",
                "properties": {self._WRAPPER_KEY: inner},
                "required": [self._WRAPPER_KEY],
                "additionalProperties": False,
            }
        else:
            self._adapter = TypeAdapter(output_type)
            self._schema = self._adapter.json_schema()

    def name(self) -> str:
        return getattr(self.output_type, "__name__", str(self.output_type))

    def json_schema(self) -> JSONSchema:
        return dict(self._schema)

    def is_strict_json_schema(self) -> bool:
        return self.strict

    def validate_json(self, text: str) -> Any:
        try:
            value = self._adapter.validate_json(text)
        except ValidationError as e:
            raise ModelBehaviorError(
                f"Invalid JSON when parsing {text!r} for {self.name()}: {e}"
            ) from e
        if self._is_wrapped:
            if self._WRAPPER_KEY not in value:
                raise ModelBehaviorError(
                    f"Could not find key {self._WRAPPER_KEY!r} in JSON output"
                )
            return value[self._WRAPPER_KEY]
        return value
