from __future__ import annotations

import asyncio

import pytest

from agentflow.agents import Agent
from agentflow.config import AgentflowConfig
from agentflow.core import RunConfig, Runner
from agentflow.models import EchoModelProvider
from agentflow.sessions import InMemorySession, SQLiteSession, create_session


def run_async(coro):
    return asyncio.run(coro)


def user(text: str) -> dict:
    return {"role": "user", "content": text}


def test_in_memory_session_requires_setup():
    session = InMemorySession("s1")

    with pytest.raises(RuntimeError, match="not initialized"):
        run_async(session.get_items())


def test_in_memory_session_round_trip_and_limit():
    async def scenario():
        async with InMemorySession("s1") as session:
            await session.add_items([user("a"), user("b"), user("c")])
            everything = await session.get_items()
            latest = await session.get_items(limit=2)
            none = await session.get_items(limit=0)
            popped = await session.pop_item()
            remaining = await session.get_items()
            await session.clear_session()
            cleared = await session.get_items()
        return everything, latest, none, popped, remaining, cleared

    everything, latest, none, popped, remaining, cleared = run_async(scenario())

    assert everything == [user("a"), user("b"), user("c")]
    assert latest == [user("b"), user("c")]
    assert none == []
    assert popped == user("c")
    assert remaining == [user("a"), user("b")]
    assert cleared == []


def test_in_memory_session_returns_copies():
    async def scenario():
        async with InMemorySession("s1") as session:
            await session.add_items([user("a")])
            items = await session.get_items()
            items[0]["content"] = "mutated"
            return await session.get_items()

    assert run_async(scenario()) == [user("a")]


def test_sqlite_session_persists_across_connections(tmp_path):
    path = str(tmp_path / "sessions.sqlite3")

    async def scenario():
        async with SQLiteSession("conv-1", path=path) as session:
            await session.add_items([user("hello"), {"type": "message", "role": "assistant", "content": "hi"}])
        async with SQLiteSession("conv-2", path=path) as other:
            await other.add_items([user("unrelated")])
        async with SQLiteSession("conv-1", path=path) as session:
            items = await session.get_items()
            latest = await session.get_items(limit=1)
            popped = await session.pop_item()
            after_pop = await session.get_items()
        return items, latest, popped, after_pop

    items, latest, popped, after_pop = run_async(scenario())

    assert items == [user("hello"), {"type": "message", "role": "assistant", "content": "hi"}]
    assert latest == [{"type": "message", "role": "assistant", "content": "hi"}]
    assert popped == {"type": "message", "role": "assistant", "content": "hi"}
    assert after_pop == [user("hello")]


def test_create_session_selects_backend(tmp_path):
    config = AgentflowConfig(sqlite_path=str(tmp_path / "default.sqlite3"))

    assert isinstance(create_session("memory", "s", config=config), InMemorySession)
    assert isinstance(create_session("in_memory", "s", config=config), InMemorySession)

    sqlite = create_session("sqlite", "s", config=config)
    assert isinstance(sqlite, SQLiteSession)
    assert sqlite.path == str(tmp_path / "default.sqlite3")

    custom = create_session("sqlite3", "s", options={"path": str(tmp_path / "x.db")}, config=config)
    assert custom.path == str(tmp_path / "x.db")


def test_create_session_rejects_unknown_store_and_missing_dsn():
    with pytest.raises(ValueError, match="Unknown session store"):
        create_session("cassandra", "s", config=AgentflowConfig())
    with pytest.raises(ValueError, match="DSN"):
        create_session("postgres", "s", config=AgentflowConfig())


def test_runner_prepends_session_history_and_saves_new_items():
    provider = EchoModelProvider(prefix="echo: ")
    agent = Agent("echo", model="echo")
    session = InMemorySession("conv")

    async def scenario():
        runner = Runner(RunConfig(model_provider=provider, session=session))
        first = await runner.run(agent, "first question")
        second_streamed = runner.run_streamed(agent, "second question")
        async for _ in second_streamed.stream_events():
            pass
        history = await session.get_items()
        return first, second_streamed, history

    first, second, history = run_async(scenario())

    assert first.final_output == "echo: first question"
    assert second.final_output == "echo: second question"
    assert history[0] == user("first question")
    assert history[2] == user("second question")
    assert len(history) == 4


def test_session_history_limit_trims_prepended_items():
    seen_inputs = []

    class _RecordingProvider(EchoModelProvider):
        def get_model(self, model_name):
            model = super().get_model(model_name)
            original = model.get_response

            async def get_response(request):
                seen_inputs.append(list(request.input))
                return await original(request)

            model.get_response = get_response
            return model

    session = InMemorySession("conv")
    agent = Agent("echo", model="echo")

    async def scenario():
        await session.setup()
        await session.add_items([user("one"), user("two"), user("three")])
        runner = Runner(
            RunConfig(model_provider=_RecordingProvider(), session=session, session_history_limit=1)
        )
        await runner.run(agent, "four")

    run_async(scenario())

    assert seen_inputs[0] == [user("three"), user("four")]
