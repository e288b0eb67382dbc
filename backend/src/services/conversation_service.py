"""Conversation and message persistence."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.orm import ChatMessage, Conversation
from src.models.pipeline import StepResult
from src.services.errors import PersistenceError

logger = logging.getLogger(__name__)

TITLE_LENGTH = 40


def conversation_title(question: str) -> str:
    text = " ".join(question.split())
    if len(text) <= TITLE_LENGTH:
        return text
    return text[:TITLE_LENGTH] + "..."


class ConversationStore:
    """Each operation runs in its own short session and commits one row."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _owned(
        self, session: AsyncSession, owner_id: str, conversation_id: str
    ) -> Conversation | None:
        result = await session.execute(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.owner_id == owner_id,
            )
        )
        return result.scalar_one_or_none()

    async def resolve_conversation(
        self,
        owner_id: str,
        conversation_id: str | None,
        question: str,
    ) -> StepResult[str]:
        """Reuse a conversation the caller owns, otherwise create a new one.

        A supplied id that does not exist or belongs to someone else is
        discarded as if none had been supplied.
        """
        try:
            async with self.session_factory() as session:
                if conversation_id:
                    if await self._owned(session, owner_id, conversation_id):
                        return StepResult.ok(conversation_id)
                    logger.warning(
                        "Conversation %s not found for owner %s; starting a new one",
                        conversation_id,
                        owner_id,
                    )

                conversation = Conversation(
                    owner_id=owner_id, title=conversation_title(question)
                )
                session.add(conversation)
                await session.commit()
                logger.info(
                    "Created conversation %s for owner %s", conversation.id, owner_id
                )
                return StepResult.ok(conversation.id)
        except SQLAlchemyError as e:
            logger.error("Conversation resolution failed: %s", e)
            return StepResult.error(f"persistence error: {e}")

    async def append_message(
        self, conversation_id: str, role: str, content: str
    ) -> StepResult[int]:
        try:
            async with self.session_factory() as session:
                message = ChatMessage(
                    conversation_id=conversation_id, role=role, content=content
                )
                session.add(message)
                await session.commit()
                logger.debug(
                    "Stored %s message %d in conversation %s",
                    role,
                    message.id,
                    conversation_id,
                )
                return StepResult.ok(message.id)
        except SQLAlchemyError as e:
            logger.error(
                "Storing %s message in conversation %s failed: %s",
                role,
                conversation_id,
                e,
            )
            return StepResult.error(f"persistence error: {e}")

    async def list_conversations(self, owner_id: str) -> Sequence[Conversation]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Conversation)
                    .where(Conversation.owner_id == owner_id)
                    .order_by(Conversation.created_at.desc())
                )
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                "HISTORY_UNAVAILABLE", "Conversation history is unavailable"
            ) from e

    async def list_messages(
        self, owner_id: str, conversation_id: str
    ) -> Sequence[ChatMessage] | None:
        """Messages in insertion order, or None if the caller does not own it."""
        try:
            async with self.session_factory() as session:
                if await self._owned(session, owner_id, conversation_id) is None:
                    return None
                result = await session.execute(
                    select(ChatMessage)
                    .where(ChatMessage.conversation_id == conversation_id)
                    .order_by(ChatMessage.id)
                )
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                "HISTORY_UNAVAILABLE", "Conversation history is unavailable"
            ) from e
