"""Pydantic request/response/error schemas."""

from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Chat API schemas (camelCase on the wire) ---


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(min_length=1)
    query_vector: list[float] | None = Field(default=None, alias="queryVector")
    history: list[HistoryTurn] = []
    conversation_id: str | None = Field(default=None, alias="conversationId")

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    conversation_id: str | None = Field(
        default=None, serialization_alias="conversationId"
    )
    error: str | None = None


# --- Conversation history schemas ---


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    created_at: datetime.datetime


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime.datetime


# --- Error schema ---


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict = {}
