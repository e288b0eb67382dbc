"""Test fixtures and configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from qdrant_client import AsyncQdrantClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.database import get_session_factory
from src.main import app
from src.models.orm import Base
from src.services.chat_service import ChatOrchestrator
from src.services.completion import CompletionClient
from src.services.conversation_service import ConversationStore
from src.services.embeddings import QueryEmbedder
from src.services.identity import IdentityResolver
from src.services.ingestion import product_record, rule_record
from src.services.rag_service import KnowledgeStore
from src.services.retriever import HybridRetriever
from tests.helpers import make_completion

test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


def override_get_session_factory() -> async_sessionmaker[AsyncSession]:
    return test_session_factory


app.dependency_overrides[get_session_factory] = override_get_session_factory

DIMENSIONS = 4

XEROS_SPRAY = {
    "nom": "Dentaid Xeros Spray",
    "cnk": 3012345,
    "nci": "Sodium fluoride 226 ppm, xylitol, betaine",
    "indications": ["dry mouth", "xerostomia"],
    "mecanisme_action": "Moisturises and protects the oral mucosa.",
    "conseil_usage": "Spray 2-3 times in the mouth as needed.",
}
ELMEX_TOOTHPASTE = {
    "nom": "Elmex Anti-Caries Toothpaste",
    "cnk": 3098765,
    "nci": "Amine fluoride 1400 ppm",
    "indications": ["caries prevention"],
    "mecanisme_action": "Amine fluoride strengthens enamel.",
    "conseil_usage": "Brush twice daily.",
}
ABSCESS_RULE = {
    "id": "R3",
    "condition": {"infection": "dental abscess", "population": "child", "red_flags": True},
    "recommendation": {"antibiotic": "amoxicillin", "duration_days": 7},
}


@pytest.fixture(autouse=True)
async def setup_database() -> AsyncIterator[None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def knowledge_store() -> AsyncIterator[KnowledgeStore]:
    """In-memory Qdrant holding two products and one antibiotic rule."""
    qdrant = AsyncQdrantClient(":memory:")
    store = KnowledgeStore(qdrant, "clinical_records")
    await store.ensure_collection(DIMENSIONS)
    await store.upsert_records(
        [
            product_record(XEROS_SPRAY, [1.0, 0.0, 0.0, 0.0]),
            product_record(ELMEX_TOOTHPASTE, [0.0, 1.0, 0.0, 0.0]),
            rule_record(ABSCESS_RULE, [0.0, 0.0, 1.0, 0.0]),
        ]
    )
    yield store
    await qdrant.close()


@pytest.fixture
def xeros_spray() -> dict:
    return dict(XEROS_SPRAY)


@pytest.fixture
def conversation_store() -> ConversationStore:
    return ConversationStore(test_session_factory)


@pytest.fixture
def make_orchestrator(
    knowledge_store: KnowledgeStore, conversation_store: ConversationStore
) -> Callable[..., ChatOrchestrator]:
    def _make(
        completion: CompletionClient | None = None,
        *,
        identity: IdentityResolver | None = None,
        refusal_policy: str = "refuse",
        retriever: HybridRetriever | None = None,
        embedder: QueryEmbedder | None = None,
    ) -> ChatOrchestrator:
        return ChatOrchestrator(
            identity=identity or IdentityResolver(user_url=""),
            conversations=conversation_store,
            retriever=retriever or HybridRetriever(knowledge_store),
            completion=completion or make_completion(),
            embedder=embedder,
            refusal_policy=refusal_policy,
        )

    return _make
