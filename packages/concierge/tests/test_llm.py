"""Tests for the OpenAI collaborator wrappers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from concierge.llm import (
    ChatModelError,
    OpenAIChatModel,
    OpenAIConfig,
    OpenAITranscriber,
    ToolCall,
    TranscriptionError,
)


def make_response(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


@pytest.fixture
def config() -> OpenAIConfig:
    return OpenAIConfig(api_key="sk-test", model="gpt-4o", max_tokens=256)


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.audio.transcriptions.create = AsyncMock()
    return client


# =============================================================================
# Test OpenAIConfig
# =============================================================================


class TestOpenAIConfig:
    """Tests for OpenAIConfig."""

    def test_integration_keys_win(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-plain")
        monkeypatch.setenv("AI_INTEGRATIONS_OPENAI_API_KEY", "sk-integration")
        monkeypatch.setenv("AI_INTEGRATIONS_OPENAI_BASE_URL", "https://proxy.test/v1")

        config = OpenAIConfig.from_env()

        assert config.api_key == "sk-integration"
        assert config.base_url == "https://proxy.test/v1"

    def test_defaults(self, monkeypatch):
        for key in (
            "OPENAI_API_KEY",
            "OPENAI_BASE_URL",
            "OPENAI_MODEL",
            "OPENAI_MAX_TOKENS",
            "AI_INTEGRATIONS_OPENAI_API_KEY",
            "AI_INTEGRATIONS_OPENAI_BASE_URL",
        ):
            monkeypatch.delenv(key, raising=False)

        config = OpenAIConfig.from_env()

        assert config.api_key == ""
        assert config.base_url is None
        assert config.model == "gpt-4o"
        assert config.max_tokens == 256


# =============================================================================
# Test OpenAIChatModel
# =============================================================================


class TestOpenAIChatModel:
    """Tests for chat completion rounds."""

    async def test_text_reply(self, config, client):
        client.chat.completions.create.return_value = make_response("Hi there!")
        model = OpenAIChatModel(config, client=client)

        completion = await model.complete([{"role": "user", "content": "hello"}])

        assert completion.text == "Hi there!"
        assert completion.tool_calls == []
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["max_completion_tokens"] == 256
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    async def test_tool_calls(self, config, client):
        client.chat.completions.create.return_value = make_response(
            None, [make_tool_call("call_1", "qualify_lead", '{"painPoint": "x"}')]
        )
        model = OpenAIChatModel(config, client=client)
        tools = [{"type": "function", "function": {"name": "qualify_lead"}}]

        completion = await model.complete([], tools=tools)

        assert completion.tool_calls == [
            ToolCall(id="call_1", name="qualify_lead", arguments='{"painPoint": "x"}')
        ]
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == "auto"

    async def test_provider_error_wrapped(self, config, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=request
        )
        model = OpenAIChatModel(config, client=client)

        with pytest.raises(ChatModelError):
            await model.complete([])

    def test_tool_call_message_part(self):
        part = ToolCall(id="call_9", name="qualify_lead", arguments="{}").as_message_part()

        assert part == {
            "id": "call_9",
            "type": "function",
            "function": {"name": "qualify_lead", "arguments": "{}"},
        }


# =============================================================================
# Test OpenAITranscriber
# =============================================================================


class TestOpenAITranscriber:
    """Tests for speech-to-text."""

    async def test_transcribe(self, config, client):
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="hello")
        transcriber = OpenAITranscriber(config, client=client)

        text = await transcriber.transcribe(b"\x1a\x45\xdf\xa3", "webm")

        assert text == "hello"
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["file"] == ("audio.webm", b"\x1a\x45\xdf\xa3")
        assert kwargs["model"] == "gpt-4o-mini-transcribe"

    async def test_provider_error_wrapped(self, config, client):
        request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
        client.audio.transcriptions.create.side_effect = openai.APITimeoutError(
            request=request
        )
        transcriber = OpenAITranscriber(config, client=client)

        with pytest.raises(TranscriptionError):
            await transcriber.transcribe(b"data", "webm")
