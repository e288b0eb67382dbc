"""Conversation history endpoints, scoped to the caller."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException

from src.dependencies import get_conversation_store, get_identity_resolver
from src.models.schemas import ConversationResponse, ErrorDetail, MessageResponse
from src.services.conversation_service import ConversationStore
from src.services.identity import IdentityResolver

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    authorization: str | None = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[ConversationResponse]:
    caller = await identity.resolve(authorization)
    conversations = await store.list_conversations(caller.user_id)
    return [ConversationResponse.model_validate(c) for c in conversations]


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: str,
    authorization: str | None = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
    store: ConversationStore = Depends(get_conversation_store),
) -> list[MessageResponse]:
    caller = await identity.resolve(authorization)
    messages = await store.list_messages(caller.user_id, conversation_id)
    if messages is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="CONVERSATION_NOT_FOUND",
                message=f"Conversation {conversation_id} not found",
            ).model_dump(),
        )
    return [MessageResponse.model_validate(m) for m in messages]
