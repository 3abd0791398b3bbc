"""Input scrubbing for text forwarded to LLM providers."""

from __future__ import annotations

import re

# Phrases commonly used to hijack the tutor persona
INJECTION_PHRASES: tuple[str, ...] = (
    "ignore previous",
    "ignore all previous",
    "disregard",
    "system prompt",
    "you are now",
    "new instructions",
    "forget everything",
    "act as",
    "pretend you are",
    "new role",
)

_INJECTION_RE = re.compile("|".join(re.escape(p) for p in INJECTION_PHRASES), re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_TOPIC_FORBIDDEN_RE = re.compile(r"[<>\"'`]")


def sanitize_user_input(text: str | None, max_chars: int = 2000) -> str:
    """Strip prompt-injection phrases, cap length and collapse whitespace.

    Examples:
        >>> sanitize_user_input("Recursion is   when you ignore previous rules")
        'Recursion is when you rules'
        >>> sanitize_user_input(None)
        ''
    """
    if not text or not isinstance(text, str):
        return ""

    cleaned = _INJECTION_RE.sub("", text)
    cleaned = cleaned[:max_chars]
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def sanitize_topic_name(topic: str | None, max_chars: int = 100) -> str:
    """Drop quote/markup characters and cap the topic length."""
    if not topic or not isinstance(topic, str):
        return ""

    cleaned = _TOPIC_FORBIDDEN_RE.sub("", topic)
    return cleaned[:max_chars].strip()
