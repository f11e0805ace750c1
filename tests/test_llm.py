"""Tests for the Anthropic streaming client."""

import asyncio
from types import SimpleNamespace

import pytest

from epicchat.errors import MissingApiKeyError, StreamAborted
from epicchat.llm import LLM, AnthropicStream, ModelDescriptor


class FakeMessageStream:
    def __init__(self, chunks, stall_after=None):
        self.chunks = chunks
        self.stall_after = stall_after

    @property
    def text_stream(self):
        return self._iterate()

    async def _iterate(self):
        for i, chunk in enumerate(self.chunks):
            if self.stall_after is not None and i == self.stall_after:
                await asyncio.Event().wait()
            yield chunk

    async def get_final_text(self):
        return "".join(self.chunks)


class FakeStreamManager:
    def __init__(self, stream):
        self.stream = stream
        self.closed = False

    async def __aenter__(self):
        return self.stream

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False


def make_client(manager):
    requests = []

    def stream(**kwargs):
        requests.append(kwargs)
        return manager

    return SimpleNamespace(messages=SimpleNamespace(stream=stream)), requests


def test_parse_model_string():
    descriptor = LLM.parse_model_string("anthropic:claude-sonnet-4-5", max_tokens=2048)

    assert descriptor.provider == "anthropic"
    assert descriptor.name == "claude-sonnet-4-5-20250929"
    assert descriptor.max_output_tokens == 2048


def test_parse_unknown_model():
    with pytest.raises(ValueError, match="Unsupported model"):
        LLM.parse_model_string("openai:gpt-4o")


def test_list_models():
    assert "anthropic:claude-haiku-4-5" in LLM.list_models()


def test_open_stream_without_key():
    llm = LLM(ModelDescriptor(provider="anthropic", name="m"), api_key=None)

    with pytest.raises(MissingApiKeyError):
        llm.open_stream("system", [{"role": "user", "content": "hi"}])


def test_open_stream_builds_request():
    llm = LLM(ModelDescriptor(provider="anthropic", name="m", max_output_tokens=99), "k")
    manager = FakeStreamManager(FakeMessageStream(["a"]))
    llm._client, requests = make_client(manager)

    stream = llm.open_stream("sys", [{"role": "user", "content": "hi"}])
    asyncio.run(stream.final())

    assert requests == [{
        "model": "m",
        "max_tokens": 99,
        "system": "sys",
        "messages": [{"role": "user", "content": "hi"}],
    }]


def test_fragments_forwarded_in_order():
    manager = FakeStreamManager(FakeMessageStream(["Hel", "lo", "!"]))
    client, _ = make_client(manager)
    stream = AnthropicStream(client, {})
    received = []
    stream.on_fragment(received.append)

    result = asyncio.run(stream.final())

    assert received == ["Hel", "lo", "!"]
    assert result == "Hello!"
    assert manager.closed


def test_request_abort_stops_stream():
    manager = FakeStreamManager(FakeMessageStream(["one", "two"], stall_after=1))
    client, _ = make_client(manager)
    stream = AnthropicStream(client, {})
    received = []

    def on_fragment(text):
        received.append(text)
        stream.request_abort()

    stream.on_fragment(on_fragment)

    with pytest.raises(StreamAborted):
        asyncio.run(stream.final())

    assert received == ["one"]
    assert manager.closed


def test_abort_before_final():
    client, requests = make_client(FakeStreamManager(FakeMessageStream(["x"])))
    stream = AnthropicStream(client, {})
    stream.request_abort()

    with pytest.raises(StreamAborted):
        asyncio.run(stream.final())

    assert requests == []


def test_non_anthropic_provider_rejected():
    with pytest.raises(ValueError):
        LLM(ModelDescriptor(provider="openai", name="gpt"), "k")
