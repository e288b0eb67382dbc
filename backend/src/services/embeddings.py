"""Query and record embedding via Google AI (Vertex AI or API key)."""

from __future__ import annotations

import logging

import httpx
from google import genai
from google.genai import types

from src.config import Settings

logger = logging.getLogger(__name__)

_VERTEX_PREDICT_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{location}/publishers/google/models/{model}:predict"
)


class QueryEmbedder:
    """Embedding model handle: built once per process, client created on first use."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: genai.Client | None = None

    @property
    def enabled(self) -> bool:
        return self._settings.server_side_embedding

    @property
    def client(self) -> genai.Client:
        """The Google GenAI client (Vertex AI via ADC).

        The same client instance exposes both sync (client.models) and async
        (client.aio.models) interfaces.
        """
        if self._client is None:
            self._client = genai.Client(
                vertexai=True,
                project=self._settings.gcp_project_id,
                location=self._settings.gcp_location,
            )
        return self._client

    async def _embed_via_api_key(
        self, texts: list[str], task_type: str
    ) -> list[list[float]]:
        """Call the Vertex AI embedding endpoint directly using a GCP API key."""
        s = self._settings
        url = _VERTEX_PREDICT_URL.format(
            location=s.gcp_location,
            project=s.gcp_project_id,
            model=s.embedding_model,
        )
        body = {
            "instances": [{"content": t, "task_type": task_type} for t in texts],
            "parameters": {"outputDimensionality": s.embedding_dimensions},
        }
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                url, params={"key": s.google_api_key}, json=body, timeout=30
            )
        resp.raise_for_status()
        return [p["embeddings"]["values"] for p in resp.json()["predictions"]]

    async def _embed(self, texts: list[str], task_type: str) -> list[list[float]]:
        if self._settings.google_api_key:
            return await self._embed_via_api_key(texts, task_type)
        response = await self.client.aio.models.embed_content(
            model=self._settings.embedding_model,
            contents=texts,
            config=types.EmbedContentConfig(
                output_dimensionality=self._settings.embedding_dimensions,
                task_type=task_type,
            ),
        )
        return [list(e.values) for e in response.embeddings]

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single question for query-time search."""
        logger.debug(
            "Embedding query (%d chars): %r",
            len(text),
            text[:100] + ("..." if len(text) > 100 else ""),
        )
        vector = (await self._embed([text], "RETRIEVAL_QUERY"))[0]
        logger.debug("Embedded query -> %d-dim vector", len(vector))
        return vector

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed record contents for indexing."""
        logger.info(
            "Embedding batch of %d texts (model=%s, dims=%d)",
            len(texts),
            self._settings.embedding_model,
            self._settings.embedding_dimensions,
        )
        vectors = await self._embed(texts, "RETRIEVAL_DOCUMENT")
        logger.info("Embedded %d texts -> %d vectors", len(texts), len(vectors))
        return vectors
