"""Outcome types passed between the chat pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

from src.models.rag import GroundingContext

T = TypeVar("T")


class StepStatus(StrEnum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one pipeline step: a value, nothing, or an error reason."""

    status: StepStatus
    value: T | None = None
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> StepResult[T]:
        return cls(StepStatus.OK, value)

    @classmethod
    def empty(cls, value: T | None = None, reason: str | None = None) -> StepResult[T]:
        return cls(StepStatus.EMPTY, value, reason)

    @classmethod
    def error(cls, reason: str, value: T | None = None) -> StepResult[T]:
        return cls(StepStatus.ERROR, value, reason)

    @property
    def succeeded(self) -> bool:
        return self.status is StepStatus.OK


class ChatState(StrEnum):
    PARSE_REQUEST = "ParseRequest"
    RESOLVE_IDENTITY = "ResolveIdentity"
    RESOLVE_CONVERSATION = "ResolveConversation"
    NORMALIZE_QUERY = "NormalizeQuery"
    EMBED_QUERY = "EmbedQuery"
    RETRIEVE = "Retrieve"
    GATE_CHECK = "GateCheck"
    REFUSE = "Refuse"
    BUILD_PROMPT = "BuildPrompt"
    COMPLETE = "Complete"
    PERSIST = "Persist"
    RESPOND = "Respond"


class ChatOutcome(StrEnum):
    SUCCESS = "success"
    REFUSAL = "refusal"
    ERROR = "error"


@dataclass(frozen=True)
class Identity:
    user_id: str
    anonymous: bool = False


@dataclass(frozen=True)
class GateDecision:
    """Proceed with a grounding context, or refuse with a canned message."""

    proceed: bool
    language: str
    context: GroundingContext | None = None
    refusal: str | None = None
