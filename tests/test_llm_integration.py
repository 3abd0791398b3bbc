"""Integration tests for LLM adapter layer."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from explain_api.adapters.llm import OpenAIClient, create_llm_client, create_llm_clients
from explain_api.adapters.llm.factory import PROVIDER_BASE_URLS
from explain_api.core.config import FallbackLLMSettings, LLMSettings
from explain_api.core.errors import ValidationAppError


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class TestOpenAIClientIntegration:
    """Test OpenAI-compatible client with mocked API calls."""

    @pytest.mark.asyncio
    async def test_generate_text_sends_persona_and_message(self) -> None:
        client = OpenAIClient(api_key="test-key", model="llama-3.3-70b-versatile", provider="groq")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("  So what is a base case?  "),
        ) as mock_create:
            result = await client.generate_text("You are a curious kid", "Recursion calls itself")

        assert result == "So what is a base case?"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["model"] == "llama-3.3-70b-versatile"
        assert kwargs["messages"][0] == {"role": "system", "content": "You are a curious kid"}
        assert kwargs["messages"][1] == {"role": "user", "content": "Recursion calls itself"}
        assert kwargs["temperature"] == 0.8
        assert kwargs["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_generate_json_parses_array_inside_code_fence(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gemini-2.0-flash", provider="gemini")
        content = '```json\n[{"concept": "Pivot", "importance": "critical"}]\n```'

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion(content),
        ) as mock_create:
            result = await client.generate_json("Checklist for quicksort")

        assert result == [{"concept": "Pivot", "importance": "critical"}]
        assert "response_format" not in mock_create.call_args.kwargs
        assert mock_create.call_args.kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_generate_json_invalid_json_raises_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion("This is not JSON"),
        ):
            with pytest.raises(RuntimeError, match="invalid JSON"):
                await client.generate_json(prompt="Test")

    @pytest.mark.asyncio
    async def test_api_failure_becomes_runtime_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o", provider="groq")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=ConnectionError("reset by peer"),
        ):
            with pytest.raises(RuntimeError, match="groq API error"):
                await client.generate_text("p", "m")

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o")

        with patch.object(
            client.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=_completion(None),
        ):
            with pytest.raises(RuntimeError, match="empty response"):
                await client.generate_text("p", "m")


class TestLLMFactory:
    """Test provider chain construction."""

    def test_known_provider_gets_default_base_url(self) -> None:
        client = create_llm_client(provider="Groq", model="llama-3.3-70b-versatile", api_key="k")

        assert isinstance(client, OpenAIClient)
        assert client.provider == "groq"
        assert str(client.client.base_url).rstrip("/") == PROVIDER_BASE_URLS["groq"].rstrip("/")

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ValidationAppError) as exc:
            create_llm_client(provider="acme", model="x", api_key="k")

        assert exc.value.code == "llm_unknown_provider"

    def test_missing_api_key_raises(self) -> None:
        with pytest.raises(ValidationAppError) as exc:
            create_llm_client(provider="openai", model="gpt-4o", api_key=None)

        assert exc.value.code == "llm_missing_api_key"

    def test_chain_with_fallback(self) -> None:
        clients = create_llm_clients(
            LLMSettings(provider="groq", model="llama-3.3-70b-versatile", api_key="g"),
            FallbackLLMSettings(provider="gemini", model="gemini-2.0-flash", api_key="m"),
        )

        assert [c.provider for c in clients] == ["groq", "gemini"]

    def test_chain_without_fallback(self) -> None:
        clients = create_llm_clients(
            LLMSettings(provider="openai", model="gpt-4o-mini", api_key="o"),
            FallbackLLMSettings(provider=None, model=None),
        )

        assert len(clients) == 1
        assert clients[0].model == "gpt-4o-mini"
