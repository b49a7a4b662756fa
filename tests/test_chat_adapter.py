"""
tests/test_chat_adapter.py
--------------------------
Unit tests for the Agent Framework chat-client adapter.  The chat client is
a MagicMock, so no model provider is contacted.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from workerchain import StageExecutionError, ValidationError, agent, collect_stream, worker
from workerchain.adapters import ChatClientAdapter, ModelAdapter, chat_model


class AsyncIteratorMock:
    def __init__(self, items):
        self.items = items
        self.index = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.index < len(self.items):
            item = self.items[self.index]
            self.index += 1
            if isinstance(item, Exception):
                raise item
            return item
        raise StopAsyncIteration

    async def aclose(self):
        self.closed = True


def _update(text):
    update = MagicMock()
    update.text = text
    return update


def _make_client(text="pong", updates=None):
    """Return a mock chat client whose agents reply with ``text`` / ``updates``."""
    response = MagicMock()
    response.text = text
    chat_agent = MagicMock()
    chat_agent.run = AsyncMock(return_value=response)
    chat_agent.run_stream = MagicMock(return_value=AsyncIteratorMock(updates or []))
    client = MagicMock()
    client.create_agent.return_value = chat_agent
    return client, chat_agent


def test_chat_model_factory_builds_adapter():
    client, _ = _make_client()
    adapter = chat_model(client, name="Planner")()
    assert isinstance(adapter, ChatClientAdapter)
    assert isinstance(adapter, ModelAdapter)
    assert adapter.name == "Planner"


@pytest.mark.asyncio
async def test_generate_passes_context_as_instructions():
    client, chat_agent = _make_client("4")
    adapter = ChatClientAdapter(client, name="Solver")

    result = await adapter.generate("2 + 2", "Answer with the number only.", max_tokens=16)

    assert result == "4"
    client.create_agent.assert_called_once_with(
        name="Solver", instructions="Answer with the number only."
    )
    chat_agent.run.assert_awaited_once_with("2 + 2", max_tokens=16)


@pytest.mark.asyncio
async def test_generate_omits_unset_options():
    client, chat_agent = _make_client()
    await ChatClientAdapter(client).generate("ping")
    client.create_agent.assert_called_once_with(name="WorkerChainAgent", instructions=None)
    chat_agent.run.assert_awaited_once_with("ping")


@pytest.mark.asyncio
async def test_generate_rejects_empty_prompt():
    client, _ = _make_client()
    with pytest.raises(ValidationError, match="Prompt must be a non-empty string"):
        await ChatClientAdapter(client).generate("   ")
    client.create_agent.assert_not_called()


@pytest.mark.asyncio
async def test_generate_wraps_backend_failures():
    client, chat_agent = _make_client()
    chat_agent.run.side_effect = RuntimeError("429 rate limited")
    with pytest.raises(StageExecutionError, match="429 rate limited"):
        await ChatClientAdapter(client).generate("ping")


@pytest.mark.asyncio
async def test_generate_rejects_empty_reply():
    client, _ = _make_client(text="")
    with pytest.raises(StageExecutionError, match="no output text"):
        await ChatClientAdapter(client).generate("ping")


@pytest.mark.asyncio
async def test_stream_yields_non_empty_update_text():
    updates = [_update("Hel"), _update(None), _update("lo"), _update("")]
    client, chat_agent = _make_client(updates=updates)

    stream = await ChatClientAdapter(client).generate("hi", "be brief", stream=True, max_tokens=8)

    assert [chunk async for chunk in stream] == ["Hel", "lo"]
    chat_agent.run_stream.assert_called_once_with("hi", max_tokens=8)
    chat_agent.run.assert_not_called()
    assert chat_agent.run_stream.return_value.closed is True


@pytest.mark.asyncio
async def test_stream_wraps_backend_failures():
    updates = [_update("part"), RuntimeError("socket closed")]
    client, chat_agent = _make_client(updates=updates)

    stream = await ChatClientAdapter(client).generate("hi", stream=True)
    received = []
    with pytest.raises(StageExecutionError, match="socket closed"):
        async for chunk in stream:
            received.append(chunk)
    assert received == ["part"]
    assert chat_agent.run_stream.return_value.closed is True


@pytest.mark.asyncio
async def test_chain_over_chat_client():
    """A two-worker chain where both workers share one mocked chat client."""
    client, chat_agent = _make_client()
    chat_agent.run.side_effect = [MagicMock(text="A plan"), MagicMock(text="Hello!")]
    chain = agent(
        worker().model(chat_model(client)).context("Create a brief plan."),
        worker().model(chat_model(client)).context("Execute the plan."),
    )

    assert await chain("Say hello") == "Hello!"
    prompts = [c.args[0] for c in chat_agent.run.await_args_list]
    assert prompts == ["Say hello", "A plan"]
    instructions = [c.kwargs["instructions"] for c in client.create_agent.call_args_list]
    assert instructions[0].endswith("Create a brief plan.")
    assert "You are Worker 2 of 2." in instructions[1]


@pytest.mark.asyncio
async def test_chain_streams_over_chat_client():
    client, chat_agent = _make_client(updates=[_update("Hi"), _update(" there")])
    chain = agent(worker().model(chat_model(client)).context("Greet."))
    stream = await chain("hello", stream=True)
    assert await collect_stream(stream) == "Hi there"
