"""Tutor service: forwards learner turns to the provider chain.

Handles:
- Input sanitization before anything reaches a provider
- Primary/fallback provider orchestration with timing metrics
- Checklist parsing with a safe default when the model misbehaves
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from explain_api.adapters.llm.base import AbstractLLMClient
from explain_api.core.config import settings
from explain_api.core.errors import LLMAppError, ValidationAppError
from explain_api.core.performance import PerformanceMonitor
from explain_api.schemas.tutor import ChatResponse, ChecklistItem, ChecklistResponse
from explain_api.utils.sanitize import sanitize_topic_name, sanitize_user_input

logger = logging.getLogger(__name__)

DEFAULT_CHECKLIST: tuple[ChecklistItem, ...] = (
    ChecklistItem(concept="Basic definition", importance="critical"),
    ChecklistItem(concept="Key components", importance="critical"),
    ChecklistItem(concept="How it works", importance="important"),
    ChecklistItem(concept="Common use cases", importance="important"),
    ChecklistItem(concept="Limitations", importance="nice-to-have"),
)


def build_checklist_prompt(topic: str) -> str:
    return f"""
You are an expert educator. Generate a checklist of 5-7 key concepts that someone should understand to truly grasp "{topic}".

For each concept, determine its importance level (critical, important, or nice-to-have).

Respond ONLY with a JSON array in this exact format:
[
  {{"concept": "Concept name", "importance": "critical"}},
  {{"concept": "Another concept", "importance": "important"}}
]

Do not include any other text.
""".strip()


def _parse_checklist(raw: Any) -> list[ChecklistItem] | None:
    """Accept a bare array or ``{"checklist": [...]}``; None when unusable."""
    if isinstance(raw, dict):
        raw = raw.get("checklist")
    if not isinstance(raw, list) or not raw:
        return None
    try:
        return [ChecklistItem.model_validate(item) for item in raw]
    except ValidationError:
        return None


class TutorService:
    """Orchestrates provider calls for the chat and checklist endpoints.

    Attributes:
        providers: Ordered provider chain; the first success wins.
        monitor: Performance monitor receiving one sample per provider call.
    """

    def __init__(self, providers: list[AbstractLLMClient], monitor: PerformanceMonitor) -> None:
        if not providers:
            raise ValueError("at least one provider is required")
        self.providers = providers
        self.monitor = monitor

    async def chat(self, system_prompt: str, user_message: str) -> ChatResponse:
        """Send one learner turn and return the first successful reply.

        Raises:
            ValidationAppError: If the message is empty after sanitization.
            LLMAppError: If every provider failed.
        """
        max_chars = settings.app.max_user_message_chars
        message = sanitize_user_input(user_message, max_chars=max_chars)
        if not message:
            raise ValidationAppError(
                code="invalid_input",
                message="Message is empty after removing disallowed content.",
                details={"max_chars": max_chars},
            )

        logger.info("chat.processing", extra={"message_length": len(message)})

        tried: list[str] = []
        for client in self.providers:
            tried.append(client.provider)
            try:
                reply = await self.monitor.measure(
                    f"{client.provider}_api_call",
                    lambda client=client: client.generate_text(system_prompt, message),
                    {"provider": client.provider},
                )
            except RuntimeError as exc:
                logger.warning(
                    "chat.provider_failed",
                    extra={"provider": client.provider, "error_msg": str(exc)},
                )
                continue
            logger.info("chat.completed", extra={"provider": client.provider})
            return ChatResponse(response=reply, provider=client.provider)

        raise LLMAppError(
            code="llm_unavailable",
            message="All AI providers failed. Please try again later.",
            details={"providers_tried": tried},
        )

    async def generate_checklist(self, topic: str) -> ChecklistResponse:
        """Build a concept checklist for ``topic``.

        Falls back to a generic checklist when a provider answers with
        something that is not a checklist.

        Raises:
            ValidationAppError: If the topic is empty after sanitization.
            LLMAppError: If every provider failed.
        """
        clean_topic = sanitize_topic_name(topic, max_chars=settings.app.max_topic_chars)
        if not clean_topic:
            raise ValidationAppError(code="invalid_topic", message="Topic is required.")

        prompt = build_checklist_prompt(clean_topic)
        tried: list[str] = []
        for client in self.providers:
            tried.append(client.provider)
            try:
                raw = await self.monitor.measure(
                    f"checklist_generation_{client.provider}",
                    lambda client=client: client.generate_json(prompt),
                    {"provider": client.provider},
                )
            except RuntimeError as exc:
                logger.warning(
                    "checklist.provider_failed",
                    extra={"provider": client.provider, "error_msg": str(exc)},
                )
                continue

            items = _parse_checklist(raw)
            if items is None:
                logger.warning("checklist.unparseable", extra={"provider": client.provider})
                return ChecklistResponse(checklist=list(DEFAULT_CHECKLIST), provider=None)

            logger.info(
                "checklist.generated",
                extra={"provider": client.provider, "item_count": len(items)},
            )
            return ChecklistResponse(checklist=items, provider=client.provider)

        raise LLMAppError(
            code="llm_unavailable",
            message="All AI providers failed. Please try again later.",
            details={"providers_tried": tried},
        )
