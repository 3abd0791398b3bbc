"""Factory for building the ordered provider chain."""

from explain_api.adapters.llm.base import AbstractLLMClient
from explain_api.adapters.llm.openai_client import OpenAIClient
from explain_api.core.config import FallbackLLMSettings, LLMSettings, settings
from explain_api.core.errors import ValidationAppError

# OpenAI-compatible endpoints of the supported providers
PROVIDER_BASE_URLS: dict[str, str | None] = {
    "openai": None,
    "groq": "https://api.groq.com/openai/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
}


def create_llm_client(
    *,
    provider: str,
    model: str,
    api_key: str | None,
    base_url: str | None = None,
    timeout_seconds: float = 30.0,
) -> AbstractLLMClient:
    """Instantiate a client for one provider.

    Raises:
        ValidationAppError: If the provider is unknown or has no API key.
    """
    provider = provider.lower()

    if provider not in PROVIDER_BASE_URLS:
        raise ValidationAppError(
            code="llm_unknown_provider",
            message=(
                f"Unknown LLM provider: '{provider}'. "
                f"Supported providers: {', '.join(sorted(PROVIDER_BASE_URLS))}"
            ),
        )
    if not api_key:
        raise ValidationAppError(
            code="llm_missing_api_key",
            message=f"{provider} provider requires an API key",
            details={"provider": provider},
        )

    return OpenAIClient(
        api_key=api_key,
        model=model,
        base_url=base_url or PROVIDER_BASE_URLS[provider],
        timeout_seconds=timeout_seconds,
        provider=provider,
    )


def create_llm_clients(
    primary: LLMSettings | None = None,
    fallback: FallbackLLMSettings | None = None,
) -> list[AbstractLLMClient]:
    """Build the provider chain from settings: primary first, then fallback.

    Reads configuration from ``explain_api.core.config.settings`` unless
    explicit settings are given.
    """
    primary = primary or settings.llm
    fallback = fallback or settings.llm_fallback

    clients = [
        create_llm_client(
            provider=primary.provider,
            model=primary.model,
            api_key=primary.api_key,
            base_url=primary.base_url,
            timeout_seconds=primary.timeout_seconds,
        )
    ]
    if fallback.enabled:
        clients.append(
            create_llm_client(
                provider=fallback.provider or "",
                model=fallback.model or "",
                api_key=fallback.api_key,
                base_url=fallback.base_url,
                timeout_seconds=fallback.timeout_seconds,
            )
        )
    return clients
