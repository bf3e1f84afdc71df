"""Unit tests for chat_provider module."""
from dataclasses import asdict
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.llm.chat_provider import ChatProvider, ChatResponse


# Test fixtures and helpers

def create_mock_response(
    content: str = '{"intent": "unknown", "clarify": null}',
    model: str = "gpt-4o-mini",
    prompt_tokens: int = 100,
    completion_tokens: int = 50,
) -> MagicMock:
    """Create a mock OpenAI chat completion response."""
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.model = model

    mock_response.usage = MagicMock()
    mock_response.usage.prompt_tokens = prompt_tokens
    mock_response.usage.completion_tokens = completion_tokens

    return mock_response


@pytest.fixture
def mock_openai_client():
    """Create a mock AsyncOpenAI client."""
    with patch("src.llm.chat_provider.AsyncOpenAI") as mock_client_class:
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock()
        mock_client_class.return_value = mock_client
        yield mock_client


class TestChatResponse:
    def test_dataclass_is_dataclass(self):
        """Test ChatResponse is a proper dataclass."""
        response = ChatResponse(
            content="test",
            model="test-model",
            input_tokens=0,
            output_tokens=0,
            duration_ms=0,
        )
        assert asdict(response) == {
            "content": "test",
            "model": "test-model",
            "input_tokens": 0,
            "output_tokens": 0,
            "duration_ms": 0,
        }


class TestChatProviderInit:
    def test_init_stores_model(self, mock_openai_client):
        """Test ChatProvider stores the model name."""
        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        assert provider.model == "gpt-4o-mini"

    def test_init_creates_client_without_retries(self):
        """Test the client is created with the timeout and no SDK retries."""
        with patch("src.llm.chat_provider.AsyncOpenAI") as mock_client_class:
            ChatProvider(model="gpt-4o-mini", api_key="test-api-key", timeout=7.5)
            mock_client_class.assert_called_once_with(
                api_key="test-api-key",
                base_url=None,
                timeout=7.5,
                max_retries=0,
            )

    def test_init_creates_client_with_base_url(self):
        """Test ChatProvider creates AsyncOpenAI client with custom base URL."""
        with patch("src.llm.chat_provider.AsyncOpenAI") as mock_client_class:
            ChatProvider(
                model="deepseek-chat",
                api_key="test-key",
                base_url="https://api.deepseek.com",
            )
            kwargs = mock_client_class.call_args[1]
            assert kwargs["base_url"] == "https://api.deepseek.com"
            assert kwargs["timeout"] == 20.0


class TestChatProviderChat:
    async def test_chat_successful_call(self, mock_openai_client):
        """Test successful chat call returns ChatResponse."""
        mock_openai_client.chat.completions.create.return_value = create_mock_response(
            content="Hello there", prompt_tokens=150, completion_tokens=75
        )

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        response = await provider.chat([{"role": "user", "content": "Hi"}])

        assert response.content == "Hello there"
        assert response.model == "gpt-4o-mini"
        assert response.input_tokens == 150
        assert response.output_tokens == 75
        assert isinstance(response.duration_ms, int)
        assert response.duration_ms >= 0

    async def test_chat_defaults_are_deterministic(self, mock_openai_client):
        """Test chat uses the default model, temperature 0 and a small token cap."""
        mock_openai_client.chat.completions.create.return_value = create_mock_response()

        provider = ChatProvider(model="deepseek-chat", api_key="test-key")
        messages = [
            {"role": "system", "content": "Classify"},
            {"role": "user", "content": "paguei 50 de luz"},
        ]
        await provider.chat(messages)

        call_kwargs = mock_openai_client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "deepseek-chat"
        assert call_kwargs["messages"] == messages
        assert call_kwargs["temperature"] == 0.0
        assert call_kwargs["max_tokens"] == 384

    async def test_chat_model_override(self, mock_openai_client):
        """Test chat can override the default model."""
        mock_openai_client.chat.completions.create.return_value = create_mock_response(
            model="gpt-4o"
        )

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        response = await provider.chat(
            [{"role": "user", "content": "test"}], model="gpt-4o", max_tokens=64
        )

        call_kwargs = mock_openai_client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "gpt-4o"
        assert call_kwargs["max_tokens"] == 64
        assert response.model == "gpt-4o"

    async def test_chat_empty_usage(self, mock_openai_client):
        """Test chat handles missing usage information gracefully."""
        mock_response = create_mock_response()
        mock_response.usage = None
        mock_openai_client.chat.completions.create.return_value = mock_response

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        response = await provider.chat([{"role": "user", "content": "test"}])

        assert response.input_tokens == 0
        assert response.output_tokens == 0

    async def test_chat_empty_content(self, mock_openai_client):
        """Test chat handles None content gracefully."""
        mock_response = create_mock_response()
        mock_response.choices[0].message.content = None
        mock_openai_client.chat.completions.create.return_value = mock_response

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        response = await provider.chat([{"role": "user", "content": "test"}])

        assert response.content == ""

    async def test_chat_model_fallback_in_response(self, mock_openai_client):
        """Test chat uses requested model when response.model is None."""
        mock_response = create_mock_response()
        mock_response.model = None
        mock_openai_client.chat.completions.create.return_value = mock_response

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        response = await provider.chat([{"role": "user", "content": "test"}])

        assert response.model == "gpt-4o-mini"

    async def test_chat_propagates_api_errors(self, mock_openai_client):
        """Test upstream errors are left for the caller to handle."""
        mock_openai_client.chat.completions.create.side_effect = RuntimeError("boom")

        provider = ChatProvider(model="gpt-4o-mini", api_key="test-key")
        with pytest.raises(RuntimeError):
            await provider.chat([{"role": "user", "content": "test"}])
