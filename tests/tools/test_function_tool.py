from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from agentflow.tools import (
    CodeInterpreterTool,
    FileSearchTool,
    HostedMCPTool,
    ToolContext,
    ToolValidationError,
    WebSearchTool,
    as_async,
    function_tool,
    stringify_output,
)


def run_async(coro):
    return asyncio.run(coro)


class EchoArgs(BaseModel):
    text: str


class AddArgs(BaseModel):
    a: int
    b: int


def test_as_async_supports_sync_and_async_functions():
    def sync_fn(value: int) -> int:
        return value + 1

    async def async_fn(value: int) -> int:
        return value + 2

    assert run_async(as_async(sync_fn)(10)) == 11
    assert run_async(as_async(async_fn)(10)) == 12


def test_decorator_uses_first_docstring_line_for_description():
    @function_tool(args_model=EchoArgs)
    def shout(args: EchoArgs) -> str:
        """Upper-cases the text.

        Longer notes that stay out of the model-facing description.
        """
        return args.text.upper()

    definition = shout.to_definition()
    assert shout.name == "shout"
    assert definition["type"] == "function"
    assert definition["description"] == "Upper-cases the text."
    assert definition["parameters"]["properties"]["text"]["type"] == "string"


def test_signature_variants_receive_context():
    @function_tool(args_model=EchoArgs, name="args_only")
    def args_only(args: EchoArgs) -> str:
        return args.text

    @function_tool(args_model=EchoArgs, name="args_ctx")
    async def args_ctx(args: EchoArgs, ctx: ToolContext) -> str:
        return f"{ctx.agent_name}:{args.text}"

    @function_tool(args_model=EchoArgs, name="ctx_args")
    def ctx_args(ctx: ToolContext, args: EchoArgs) -> str:
        return f"{ctx.tool_call_id}:{args.text}"

    ctx = ToolContext(agent_name="writer", tool_call_id="call_1")

    assert run_async(args_only.call({"text": "a"}, ctx=ctx)).output == "a"
    assert run_async(args_ctx.call({"text": "b"}, ctx=ctx)).output == "writer:b"
    assert run_async(ctx_args.call({"text": "c"}, ctx=ctx)).output == "call_1:c"


def test_args_model_is_inferred_from_annotations():
    @function_tool
    def add(args: AddArgs) -> int:
        """Adds two numbers."""
        return args.a + args.b

    @function_tool(name="echo_with_ctx")
    def echo(ctx: ToolContext, args: EchoArgs) -> str:
        return args.text

    assert add.name == "add"
    assert add.to_definition()["description"] == "Adds two numbers."
    assert run_async(add.call({"a": 2, "b": 3})).output == 5
    assert echo.name == "echo_with_ctx"
    assert set(echo.to_definition()["parameters"]["properties"]) == {"text"}


def test_missing_args_model_is_rejected():
    with pytest.raises(ToolValidationError, match="needs a pydantic args model"):

        @function_tool
        def untyped(value: int) -> int:
            return value


def test_invalid_signature_is_rejected():
    with pytest.raises(ToolValidationError, match="ToolContext"):

        @function_tool(args_model=EchoArgs)
        def bad(args: EchoArgs, other: str) -> str:
            return args.text


def test_call_json_reports_failures_as_results():
    @function_tool(args_model=AddArgs, name="add")
    def add(args: AddArgs) -> int:
        return args.a + args.b

    ok = run_async(add.call_json('{"a": 2, "b": 3}', tool_call_id="c1"))
    bad_json = run_async(add.call_json("{not json"))
    not_object = run_async(add.call_json("[1, 2]"))
    bad_args = run_async(add.call_json('{"a": "x", "b": 1}'))

    assert ok.success and ok.output == 5 and ok.tool_call_id == "c1"
    assert ok.to_model_text() == "5"
    assert not bad_json.success and "Invalid JSON" in bad_json.error_message
    assert not not_object.success and "expects a JSON object" in not_object.error_message
    assert not bad_args.success
    assert bad_args.to_model_text().startswith("An error occurred while running the tool:")


def test_execution_errors_and_timeouts():
    @function_tool(args_model=EchoArgs, name="boom")
    def boom(args: EchoArgs) -> str:
        raise RuntimeError("exploded")

    @function_tool(args_model=EchoArgs, name="slow", timeout=0.01)
    async def slow(args: EchoArgs) -> str:
        await asyncio.sleep(1)
        return args.text

    @function_tool(args_model=EchoArgs, name="strict", raise_on_error=True)
    def strict(args: EchoArgs) -> str:
        raise RuntimeError("fatal")

    failed = run_async(boom.call({"text": "x"}))
    timed_out = run_async(slow.call({"text": "x"}))

    assert "exploded" in failed.error_message
    assert "timeout" in timed_out.error_message
    with pytest.raises(Exception, match="fatal"):
        run_async(strict.call({"text": "x"}))


def test_stringify_output_handles_common_values():
    assert stringify_output(None) == ""
    assert stringify_output("plain") == "plain"
    assert stringify_output({"a": 1}) == '{"a": 1}'
    assert stringify_output(EchoArgs(text="hi")) == '{"text":"hi"}'


def test_hosted_tool_definitions():
    web = WebSearchTool(user_location={"type": "approximate", "city": "Oslo"}, search_context_size="high")
    files = FileSearchTool(vector_store_ids=["vs_1"], max_num_results=3)
    code = CodeInterpreterTool()
    mcp = HostedMCPTool(
        server_label="docs",
        server_url="https://mcp.example.com",
        require_approval="never",
        allowed_tools=["search"],
    )

    assert web.to_definition() == {
        "type": "web_search_preview",
        "search_context_size": "high",
        "user_location": {"type": "approximate", "city": "Oslo"},
    }
    assert files.to_definition() == {
        "type": "file_search",
        "vector_store_ids": ["vs_1"],
        "max_num_results": 3,
    }
    assert code.to_definition() == {"type": "code_interpreter", "container": {"type": "auto"}}
    assert mcp.to_definition() == {
        "type": "mcp",
        "server_label": "docs",
        "server_url": "https://mcp.example.com",
        "require_approval": "never",
        "allowed_tools": ["search"],
    }
