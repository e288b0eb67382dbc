"""Chat orchestration: identity, retrieval, grounding gate, completion, persistence.

Only configuration and identity failures (when strict auth is enforced)
escape ``handle``; request parsing is validated before it is called. Every
later step runs through ``_step`` so that an unexpected error is logged and
replaced by that step's safe fallback, and the caller always gets a textual
answer.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from fastapi import BackgroundTasks

from src.models.pipeline import (
    ChatOutcome,
    ChatState,
    GateDecision,
    StepResult,
)
from src.models.schemas import ChatRequest, ChatResponse
from src.services.completion import CompletionClient
from src.services.conversation_service import ConversationStore
from src.services.embeddings import QueryEmbedder
from src.services.errors import ConfigurationError
from src.services.grounding import check_grounding
from src.services.identity import IdentityResolver
from src.services.language import DEFAULT_LANGUAGE, apology_message, refusal_message
from src.services.prompts import build_system_prompt, build_ungrounded_prompt
from src.services.query_normalizer import NormalizedQuery, normalize_query
from src.services.rag_service import has_signal
from src.services.retriever import HybridRetriever

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ChatResult:
    response: ChatResponse
    outcome: ChatOutcome


class ChatOrchestrator:
    def __init__(
        self,
        *,
        identity: IdentityResolver,
        conversations: ConversationStore,
        retriever: HybridRetriever,
        completion: CompletionClient,
        embedder: QueryEmbedder | None = None,
        refusal_policy: Literal["refuse", "general_knowledge"] = "refuse",
        min_keyword_length: int = 4,
        search_keyword_count: int = 5,
    ) -> None:
        self.identity = identity
        self.conversations = conversations
        self.retriever = retriever
        self.completion = completion
        self.embedder = embedder
        self.refusal_policy = refusal_policy
        self.min_keyword_length = min_keyword_length
        self.search_keyword_count = search_keyword_count

    async def _step(
        self,
        state: ChatState,
        fallback: T,
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run one step; on an unexpected error log it and return ``fallback``."""
        logger.debug("-> %s", state)
        try:
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception:
            logger.exception("%s failed; degrading to fallback", state)
            return fallback

    async def _embedding(self, request: ChatRequest) -> list[float] | None:
        if has_signal(request.query_vector):
            return request.query_vector
        # A zero vector means the client-side embedding failed.
        if self.embedder is None or not self.embedder.enabled:
            return None
        return await self._step(
            ChatState.EMBED_QUERY, None, self.embedder.embed_query, request.question
        )

    async def _persist_assistant_turn(self, conversation_id: str, content: str) -> None:
        result = await self._step(
            ChatState.PERSIST,
            StepResult.error("unexpected error"),
            self.conversations.append_message,
            conversation_id,
            "assistant",
            content,
        )
        if not result.succeeded:
            logger.warning(
                "Assistant turn for conversation %s not stored: %s",
                conversation_id,
                result.reason,
            )

    async def _answer(
        self, request: ChatRequest, decision: GateDecision
    ) -> tuple[str, ChatOutcome]:
        """Refusal, or the completion built on the decision's context."""
        language = decision.language
        if decision.proceed:
            prompt = await self._step(
                ChatState.BUILD_PROMPT,
                None,
                build_system_prompt,
                decision.context,
                language,
            )
        elif self.refusal_policy == "general_knowledge":
            logger.info("%s: no evidence, answering ungrounded", ChatState.BUILD_PROMPT)
            prompt = build_ungrounded_prompt(language)
        else:
            logger.info("%s: hard refusal", ChatState.REFUSE)
            return decision.refusal or refusal_message(language), ChatOutcome.REFUSAL

        if prompt is None:
            return apology_message(language), ChatOutcome.ERROR

        completion = await self._step(
            ChatState.COMPLETE,
            StepResult.error("unexpected error"),
            self.completion.complete,
            prompt,
            request.history,
            request.question,
        )
        if completion.succeeded:
            return completion.value, ChatOutcome.SUCCESS
        logger.warning("Completion unavailable (%s); sending apology", completion.reason)
        return apology_message(language), ChatOutcome.ERROR

    async def handle(
        self,
        request: ChatRequest,
        authorization: str | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> ChatResult:
        """Answer one question.

        The user turn is stored before retrieval. The assistant turn is stored
        through ``background_tasks`` when given (after the response is sent,
        best-effort), otherwise awaited inline.
        """
        question = request.question
        logger.info(
            "%s: question=%r history=%d vector=%s conversation=%s",
            ChatState.PARSE_REQUEST,
            question[:100],
            len(request.history),
            "yes" if request.query_vector else "no",
            request.conversation_id,
        )
        if not self.completion.configured:
            raise ConfigurationError(
                "COMPLETION_NOT_CONFIGURED", "Completion API key is not configured"
            )

        identity = await self.identity.resolve(authorization)
        logger.info(
            "%s: caller=%s anonymous=%s",
            ChatState.RESOLVE_IDENTITY,
            identity.user_id,
            identity.anonymous,
        )

        resolved = await self._step(
            ChatState.RESOLVE_CONVERSATION,
            StepResult.error("unexpected error"),
            self.conversations.resolve_conversation,
            identity.user_id,
            request.conversation_id,
            question,
        )
        conversation_id = resolved.value if resolved.succeeded else None
        if conversation_id:
            await self._step(
                ChatState.PERSIST,
                None,
                self.conversations.append_message,
                conversation_id,
                "user",
                question,
            )

        query = await self._step(
            ChatState.NORMALIZE_QUERY,
            NormalizedQuery(keywords=(), search_text=""),
            normalize_query,
            question,
            min_length=self.min_keyword_length,
            search_terms=self.search_keyword_count,
        )
        logger.info("%s: keywords=%s", ChatState.NORMALIZE_QUERY, list(query.keywords))

        embedding = await self._embedding(request)
        retrieval = await self._step(
            ChatState.RETRIEVE,
            StepResult.error("unexpected error", value=[]),
            self.retriever.retrieve,
            embedding,
            query,
        )
        logger.info(
            "%s: status=%s results=%d",
            ChatState.RETRIEVE,
            retrieval.status,
            len(retrieval.value or []),
        )

        decision = await self._step(
            ChatState.GATE_CHECK,
            GateDecision(
                proceed=False,
                language=DEFAULT_LANGUAGE,
                refusal=refusal_message(DEFAULT_LANGUAGE),
            ),
            check_grounding,
            retrieval.value or [],
            question,
        )

        answer, outcome = await self._answer(request, decision)

        # The apology after a failed completion is not stored.
        if conversation_id and outcome is not ChatOutcome.ERROR:
            if background_tasks is not None:
                background_tasks.add_task(
                    self._persist_assistant_turn, conversation_id, answer
                )
            else:
                await self._persist_assistant_turn(conversation_id, answer)

        logger.info(
            "%s: outcome=%s conversation=%s (%d chars)",
            ChatState.RESPOND,
            outcome,
            conversation_id,
            len(answer),
        )
        return ChatResult(
            response=ChatResponse(content=answer, conversation_id=conversation_id),
            outcome=outcome,
        )
