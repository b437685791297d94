from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module converts manifest inputs into model input items.
"""

from typing import Any, Sequence

from ..models.types import InputItem
from .errors import WorkflowBuildError
from .types import WorkflowInput

MESSAGE_ROLES = ("user", "assistant", "system", "developer")
IMAGE_DETAILS = ("low", "high", "auto")


def build_input_items(inputs: Sequence[WorkflowInput]) -> list[InputItem]:
    """
    Convert manifest inputs into Responses-style message items.

    Args:
        inputs: Validated manifest inputs.

    Returns:
        One message item per input; empty when there are no inputs.

    Raises:
        WorkflowBuildError: Naming the first input that cannot be converted.
    """
    items: list[InputItem] = []
    for index, item in enumerate(inputs):
        try:
            items.append(workflow_input_to_item(item))
        except ValueError as e:
            raise WorkflowBuildError(f"inputs[{index}]: {e}") from e
    return items


def workflow_input_to_item(item: WorkflowInput) -> InputItem:
    """
    Convert one input.

    `text` and `image` are shortcuts for a `message` with a single part.

    Raises:
        ValueError: If the input type is unsupported or the content is malformed.
    """
    kind = item.type.strip().lower()
    if kind == "message":
        return _message(item.role, item.content, item.uri)
    if kind == "text":
        content = item.content
        if content is None and item.uri.strip():
            content = item.uri.strip()
        if content is None:
            raise ValueError("text input requires content or uri")
        return _message(item.role or "user", content, "")
    if kind == "image":
        if not item.uri.strip() and item.content is None:
            raise ValueError("image input requires uri or content")
        parts: Any = [{"type": "input_image", "image_url": item.uri.strip()}]
        if isinstance(item.content, list):
            parts = item.content
        elif isinstance(item.content, dict):
            parts = [item.content]
        return _message(item.role or "user", parts, "")
    raise ValueError(f"input type {item.type!r} not supported yet")


def _normalize_role(role: str) -> str:
    value = role.strip().lower()
    if not value:
        return "user"
    if value not in MESSAGE_ROLES:
        raise ValueError(f"role {role!r} not supported")
    return value


def _message(role: str, content: Any, uri: str) -> InputItem:
    message: InputItem = {"type": "message", "role": _normalize_role(role)}

    if content is None and uri.strip():
        message["content"] = build_content_list(
            [{"type": "input_image", "image_url": uri.strip()}]
        )
        return message

    if content is None:
        raise ValueError("message input requires content")
    if isinstance(content, str):
        message["content"] = content
    elif isinstance(content, list):
        message["content"] = build_content_list(content)
    elif isinstance(content, dict):
        if "parts" in content:
            parts = content["parts"]
            if not isinstance(parts, list):
                raise ValueError("message content parts must be an array")
            message["content"] = build_content_list(parts)
        elif isinstance(content.get("text"), str) and content["text"]:
            message["content"] = content["text"]
        else:
            raise ValueError("message content requires parts or text")
    else:
        raise ValueError(f"message content type {type(content).__name__} not supported")
    return message


def build_content_list(parts: Sequence[Any]) -> list[dict[str, Any]]:
    """
    Normalize message content parts.

    Raises:
        ValueError: If the list is empty or a part is malformed.
    """
    if not parts:
        raise ValueError("message content list cannot be empty")
    result: list[dict[str, Any]] = []
    for index, part in enumerate(parts):
        try:
            result.append(_content_part(part))
        except ValueError as e:
            raise ValueError(f"content[{index}]: {e}") from e
    return result


def _str_field(part: dict[str, Any], key: str) -> str:
    value = part.get(key)
    if isinstance(value, str):
        return value.strip()
    return ""


def _content_part(part: Any) -> dict[str, Any]:
    if isinstance(part, str):
        return {"type": "input_text", "text": part}
    if not isinstance(part, dict):
        raise ValueError(f"unsupported content item type {type(part).__name__}")

    kind = (_str_field(part, "type") or "input_text").lower()
    if kind in ("input_text", "text"):
        text = part.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("text content requires text field")
        return {"type": "input_text", "text": text}

    if kind in ("input_image", "image"):
        detail = _str_field(part, "detail").lower()
        image: dict[str, Any] = {
            "type": "input_image",
            "detail": detail if detail in IMAGE_DETAILS else "auto",
        }
        if _str_field(part, "image_url"):
            image["image_url"] = _str_field(part, "image_url")
        if _str_field(part, "file_id"):
            image["file_id"] = _str_field(part, "file_id")
        if "image_url" not in image and "file_id" not in image:
            raise ValueError("image content requires image_url or file_id")
        return image

    if kind in ("input_file", "file"):
        file: dict[str, Any] = {"type": "input_file"}
        for key in ("file_url", "file_data", "file_id"):
            if _str_field(part, key):
                file[key] = _str_field(part, key)
        if len(file) == 1:
            raise ValueError("file content requires file_url, file_data, or file_id")
        return file

    if kind == "input_audio" and isinstance(part.get("input_audio"), dict):
        return {"type": "input_audio", "input_audio": dict(part["input_audio"])}

    raise ValueError(f"custom content {kind!r} missing recognized payload")
