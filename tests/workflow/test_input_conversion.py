from __future__ import annotations

import re

import pytest

from agentflow.workflow import WorkflowBuildError, build_input_items, workflow_input_to_item
from agentflow.workflow.types import WorkflowInput


def test_text_input_becomes_user_message():
    item = workflow_input_to_item(WorkflowInput(type="text", content="hello"))

    assert item == {"type": "message", "role": "user", "content": "hello"}


def test_text_input_falls_back_to_uri():
    item = workflow_input_to_item(WorkflowInput(type="text", uri=" https://example.com/doc.txt "))

    assert item["content"] == "https://example.com/doc.txt"


def test_image_input_with_uri():
    item = workflow_input_to_item(
        WorkflowInput(type="image", role="User", uri="https://example.com/cat.png")
    )

    assert item == {
        "type": "message",
        "role": "user",
        "content": [
            {"type": "input_image", "detail": "auto", "image_url": "https://example.com/cat.png"}
        ],
    }


def test_message_with_mixed_parts():
    item = workflow_input_to_item(
        WorkflowInput(
            type="message",
            role="developer",
            content=[
                "Describe this.",
                {"type": "image", "file_id": "file_1", "detail": "HIGH"},
                {"type": "file", "file_url": "https://example.com/a.pdf"},
                {"type": "input_audio", "input_audio": {"data": "AAA", "format": "wav"}},
            ],
        )
    )

    assert item["role"] == "developer"
    assert item["content"] == [
        {"type": "input_text", "text": "Describe this."},
        {"type": "input_image", "detail": "high", "file_id": "file_1"},
        {"type": "input_file", "file_url": "https://example.com/a.pdf"},
        {"type": "input_audio", "input_audio": {"data": "AAA", "format": "wav"}},
    ]


def test_message_content_mapping_forms():
    parts = workflow_input_to_item(
        WorkflowInput(type="message", content={"parts": [{"type": "text", "text": "a"}]})
    )
    text = workflow_input_to_item(WorkflowInput(type="message", content={"text": "plain"}))
    uri_only = workflow_input_to_item(WorkflowInput(type="message", uri="https://example.com/x.png"))

    assert parts["content"] == [{"type": "input_text", "text": "a"}]
    assert text["content"] == "plain"
    assert uri_only["content"][0]["image_url"] == "https://example.com/x.png"


@pytest.mark.parametrize(
    "value, message",
    [
        (WorkflowInput(type="message", role="robot", content="x"), "role 'robot' not supported"),
        (WorkflowInput(type="message"), "message input requires content"),
        (WorkflowInput(type="message", content=[]), "message content list cannot be empty"),
        (WorkflowInput(type="message", content={"parts": "x"}), "parts must be an array"),
        (WorkflowInput(type="message", content={"other": 1}), "requires parts or text"),
        (WorkflowInput(type="message", content=42), "content type int not supported"),
        (
            WorkflowInput(type="message", content=[{"type": "image"}]),
            "content[0]: image content requires image_url or file_id",
        ),
        (
            WorkflowInput(type="message", content=[{"type": "text", "text": " "}]),
            "content[0]: text content requires text field",
        ),
        (
            WorkflowInput(type="message", content=[{"type": "video"}]),
            "content[0]: custom content 'video' missing recognized payload",
        ),
        (WorkflowInput(type="audio", content="x"), "input type 'audio' not supported yet"),
    ],
)
def test_conversion_errors(value, message):
    with pytest.raises(ValueError, match=re.escape(message)):
        workflow_input_to_item(value)


def test_build_input_items_names_failing_input():
    inputs = [
        WorkflowInput(type="text", content="ok"),
        WorkflowInput(type="video", uri="https://example.com/v.mp4"),
    ]

    with pytest.raises(WorkflowBuildError, match=r"inputs\[1\]: input type 'video'"):
        build_input_items(inputs)

    assert build_input_items([]) == []
    assert len(build_input_items(inputs[:1])) == 1
