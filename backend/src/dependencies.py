"""Process-wide service instances, built on first use and closed at shutdown."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends
from qdrant_client import AsyncQdrantClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.database import get_session_factory
from src.services.chat_service import ChatOrchestrator
from src.services.completion import CompletionClient
from src.services.conversation_service import ConversationStore
from src.services.embeddings import QueryEmbedder
from src.services.identity import IdentityResolver
from src.services.rag_service import KnowledgeStore, qdrant_kwargs
from src.services.retriever import HybridRetriever

logger = logging.getLogger(__name__)


@lru_cache
def get_qdrant_client() -> AsyncQdrantClient:
    return AsyncQdrantClient(**qdrant_kwargs(settings))


@lru_cache
def get_embedder() -> QueryEmbedder:
    return QueryEmbedder(settings)


@lru_cache
def get_completion_client() -> CompletionClient:
    return CompletionClient(
        api_key=settings.completion_api_key,
        base_url=settings.completion_base_url,
        model=settings.completion_model,
        temperature=settings.completion_temperature,
        timeout=settings.completion_timeout_seconds,
        history_window=settings.history_window,
    )


@lru_cache
def get_identity_resolver() -> IdentityResolver:
    return IdentityResolver(
        user_url=settings.auth_user_url,
        api_key=settings.auth_api_key,
        required=settings.auth_required,
        anonymous_user_id=settings.anonymous_user_id,
        timeout=settings.auth_timeout_seconds,
    )


def get_knowledge_store() -> KnowledgeStore:
    return KnowledgeStore(
        get_qdrant_client(),
        settings.qdrant_collection,
        vector_weight=settings.vector_weight,
        text_weight=settings.text_weight,
    )


def get_retriever(
    store: KnowledgeStore = Depends(get_knowledge_store),
) -> HybridRetriever:
    return HybridRetriever(
        store,
        threshold=settings.similarity_threshold,
        relaxed_threshold=settings.relaxed_similarity_threshold,
        match_count=settings.match_count,
        fallback_keywords=settings.fallback_keyword_count,
        per_keyword_limit=settings.fallback_per_keyword_limit,
    )


def get_conversation_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ConversationStore:
    return ConversationStore(session_factory)


def get_orchestrator(
    retriever: HybridRetriever = Depends(get_retriever),
    conversations: ConversationStore = Depends(get_conversation_store),
    identity: IdentityResolver = Depends(get_identity_resolver),
    completion: CompletionClient = Depends(get_completion_client),
    embedder: QueryEmbedder = Depends(get_embedder),
) -> ChatOrchestrator:
    return ChatOrchestrator(
        identity=identity,
        conversations=conversations,
        retriever=retriever,
        completion=completion,
        embedder=embedder,
        refusal_policy=settings.refusal_policy,
        min_keyword_length=settings.min_keyword_length,
        search_keyword_count=settings.search_keyword_count,
    )


async def close_clients() -> None:
    """Close the clients that were actually created during this process."""
    if get_completion_client.cache_info().currsize:
        await get_completion_client().aclose()
    if get_identity_resolver.cache_info().currsize:
        await get_identity_resolver().aclose()
    if get_qdrant_client.cache_info().currsize:
        await get_qdrant_client().close()
    logger.info("Closed outbound clients")
