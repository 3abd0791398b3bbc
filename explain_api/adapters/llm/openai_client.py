"""OpenAI-compatible chat completions adapter.

Groq and Gemini both expose OpenAI-compatible endpoints, so a single client
class serves every configured provider.
"""

import json
from typing import Any

from openai import AsyncOpenAI

from explain_api.adapters.llm.base import AbstractLLMClient

_PASSTHROUGH_PARAMS = ("max_tokens", "top_p", "frequency_penalty", "presence_penalty", "seed")


def _strip_code_fence(content: str) -> str:
    """Remove a surrounding ```json fence some models add despite instructions."""
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        if content.rstrip().endswith("```"):
            content = content.rstrip()[:-3]
    return content.strip()


class OpenAIClient(AbstractLLMClient):
    """Client for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        provider: str = "openai",
    ) -> None:
        """Initialize the async client.

        Args:
            api_key: Provider API key.
            model: Model name (e.g., "llama-3.3-70b-versatile").
            base_url: Optional OpenAI-compatible endpoint.
            timeout_seconds: Timeout for requests in seconds.
            provider: Provider label used in responses and metrics.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model
        self.provider = provider

    async def _complete(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.pop("temperature", 0.8),
        }
        for param in _PASSTHROUGH_PARAMS:
            if param in kwargs:
                request_params[param] = kwargs[param]

        try:
            response = await self.client.chat.completions.create(**request_params)
            content = response.choices[0].message.content
        except Exception as exc:
            raise RuntimeError(f"{self.provider} API error: {exc}") from exc

        if not content:
            raise RuntimeError(f"{self.provider} returned empty response")
        return content.strip()

    async def generate_text(
        self,
        system_prompt: str,
        user_message: str,
        **kwargs: Any,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]
        kwargs.setdefault("max_tokens", 500)
        return await self._complete(messages, **kwargs)

    async def generate_json(
        self,
        prompt: str,
        **kwargs: Any,
    ) -> Any:
        """Generate a JSON value; arrays are allowed so no response_format is forced."""
        messages = [
            {
                "role": "system",
                "content": "Output JSON only. No extra text or markdown formatting.",
            },
            {"role": "user", "content": prompt},
        ]
        kwargs.setdefault("temperature", 0.2)
        content = await self._complete(messages, **kwargs)

        try:
            return json.loads(_strip_code_fence(content))
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"{self.provider} returned invalid JSON: {exc}") from exc
