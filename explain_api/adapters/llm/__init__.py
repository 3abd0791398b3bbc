"""LLM adapter layer - abstracts over OpenAI-compatible providers."""

from explain_api.adapters.llm.base import AbstractLLMClient
from explain_api.adapters.llm.factory import create_llm_client, create_llm_clients
from explain_api.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "create_llm_client",
    "create_llm_clients",
]
