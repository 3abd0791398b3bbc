"""AI proxy endpoints.

Both routes sit behind the edge rate limit middleware, so by the time a
handler runs the caller is within budget for this exact path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from explain_api.adapters.llm.factory import create_llm_clients
from explain_api.schemas.tutor import (
    ChatRequest,
    ChatResponse,
    ChecklistRequest,
    ChecklistResponse,
)
from explain_api.services.tutor_service import TutorService

router = APIRouter(prefix="/api", tags=["Tutor"])


def get_tutor_service(request: Request) -> TutorService:
    """Return the app-wide tutor service, building it on first use.

    Providers are created lazily so the app can boot (and serve health and
    monitoring) before provider credentials are valid.
    """
    service = getattr(request.app.state, "tutor_service", None)
    if service is None:
        service = TutorService(
            providers=create_llm_clients(),
            monitor=request.app.state.performance_monitor,
        )
        request.app.state.tutor_service = service
    return service


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    service: TutorService = Depends(get_tutor_service),
) -> ChatResponse:
    """Forward one learner turn to the tutor persona."""
    return await service.chat(payload.system_prompt, payload.user_message)


@router.post("/generate-checklist", response_model=ChecklistResponse)
async def generate_checklist(
    payload: ChecklistRequest,
    service: TutorService = Depends(get_tutor_service),
) -> ChecklistResponse:
    """Generate the key-concept checklist for a topic."""
    return await service.generate_checklist(payload.topic)
