"""Pydantic schemas for the AI proxy endpoints."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Learner turn forwarded to the tutor persona."""

    system_prompt: str = Field(..., min_length=1, description="Persona instructions for the model.")
    user_message: str = Field(..., min_length=1, description="Transcript of what the learner said.")


class ChatResponse(BaseModel):
    response: str = Field(..., description="Model reply.")
    provider: str = Field(..., description="Provider that produced the reply.")


class ChecklistRequest(BaseModel):
    topic: str = Field(..., min_length=1, description="Concept the learner wants to explain.")


class ChecklistItem(BaseModel):
    concept: str
    importance: Literal["critical", "important", "nice-to-have"] = "important"


class ChecklistResponse(BaseModel):
    checklist: List[ChecklistItem] = Field(default_factory=list)
    provider: str | None = Field(
        default=None,
        description="Provider that produced the checklist; null when the default list was used.",
    )
