from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the output types a manifest can declare for an agent.
"""

import copy
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from ..agents.errors import ModelBehaviorError
from ..agents.output import AgentOutputSchemaBase
from ..models.types import JSONSchema
from .types import OutputTypeDeclaration

OutputTypeFactory = Callable[[OutputTypeDeclaration], AgentOutputSchemaBase]

_OBJECT_ADAPTER: TypeAdapter[dict[str, Any]] = TypeAdapter(dict[str, Any])
_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


class JSONObjectOutputType(AgentOutputSchemaBase):
    """Any JSON object; the final output is the decoded mapping."""

    def __init__(self, name: str = "json_object") -> None:
        self._name = name

    def name(self) -> str:
        return self._name

    def json_schema(self) -> JSONSchema:
        return {"type": "object", "additionalProperties": True}

    def is_strict_json_schema(self) -> bool:
        return False

    def validate_json(self, text: str) -> Any:
        try:
            return _OBJECT_ADAPTER.validate_json(text)
        except ValidationError as e:
            raise ModelBehaviorError(f"Invalid JSON object for {self._name}: {e}") from e


class InlineSchemaOutputType(AgentOutputSchemaBase):
    """
    Output described by a JSON schema embedded in the manifest.

    The schema is forwarded to the model as is. Local validation decodes the
    JSON, checks the top-level type and the required properties; the
    provider enforces the rest in strict mode.
    """

    def __init__(self, name: str, schema: JSONSchema, *, strict: bool = False) -> None:
        self._name = name or "inline_schema"
        self._schema = copy.deepcopy(schema)
        self.strict = strict

    def name(self) -> str:
        return self._name

    def json_schema(self) -> JSONSchema:
        return copy.deepcopy(self._schema)

    def is_strict_json_schema(self) -> bool:
        return self.strict

    def validate_json(self, text: str) -> Any:
        is_object = self._schema.get("type", "object") == "object"
        adapter = _OBJECT_ADAPTER if is_object else _ANY_ADAPTER
        try:
            value = adapter.validate_json(text)
        except ValidationError as e:
            raise ModelBehaviorError(f"Invalid JSON when parsing {text!r} for {self._name}: {e}") from e
        if is_object:
            required = self._schema.get("required") or []
            missing = [key for key in required if isinstance(key, str) and key not in value]
            if missing:
                raise ModelBehaviorError(
                    f"Output for {self._name} is missing required properties {missing}"
                )
        return value


def json_object_output_type(decl: OutputTypeDeclaration) -> AgentOutputSchemaBase:
    return JSONObjectOutputType(decl.name or "json_object")


DEFAULT_OUTPUT_TYPES: dict[str, OutputTypeFactory] = {
    "json_object": json_object_output_type,
}
