"""Chat consultation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Header

from src.dependencies import get_orchestrator
from src.models.schemas import ChatRequest, ChatResponse
from src.services.chat_service import ChatOrchestrator

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
)
async def chat(
    request: ChatRequest,
    background_tasks: BackgroundTasks,
    authorization: str | None = Header(default=None),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Answer a clinical question from the product and rule records only.

    Refusals and degraded answers (completion timeout or error) are 200
    responses with canned text in ``content``.
    """
    result = await orchestrator.handle(request, authorization, background_tasks)
    return result.response
