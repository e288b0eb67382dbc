"""Chat completion client for an OpenAI-compatible endpoint (Groq by default)."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from src.models.pipeline import StepResult
from src.models.schemas import HistoryTurn
from src.services.errors import CompletionFailure

logger = logging.getLogger(__name__)


class CompletionClient:
    """One non-streaming completion per call, bounded by ``timeout`` seconds.

    Failures are not retried: the caller substitutes its canned apology.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.1,
        timeout: float = 15.0,
        history_window: int = 6,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self.history_window = history_window
        self._http = http_client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def build_messages(
        self, system_prompt: str, history: list[HistoryTurn], question: str
    ) -> list[dict[str, str]]:
        """System prompt, the trailing history window, then the question."""
        window = history[-self.history_window :] if self.history_window > 0 else []
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(
            {"role": turn.role, "content": turn.content}
            for turn in window
            if turn.content.strip()
        )
        messages.append({"role": "user", "content": question})
        return messages

    async def _request(self, messages: list[dict[str, str]]) -> str:
        response = await self.http.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
                "stream": False,
            },
            timeout=self.timeout,
        )
        if response.is_error:
            raise CompletionFailure(
                "COMPLETION_HTTP_ERROR",
                f"Completion endpoint returned {response.status_code}: "
                f"{response.text[:200]}",
            )
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionFailure(
                "COMPLETION_MALFORMED", f"Unusable completion response: {e}"
            ) from e
        if not content or not content.strip():
            raise CompletionFailure("COMPLETION_EMPTY", "Completion was empty")
        return content

    async def complete(
        self,
        system_prompt: str,
        history: list[HistoryTurn],
        question: str,
    ) -> StepResult[str]:
        messages = self.build_messages(system_prompt, history, question)
        logger.info(
            "Completion request: model=%s messages=%d temperature=%.2f timeout=%.1fs",
            self.model,
            len(messages),
            self.temperature,
            self.timeout,
        )
        started = time.monotonic()
        try:
            content = await asyncio.wait_for(self._request(messages), self.timeout)
        except TimeoutError:
            logger.warning("Completion timed out after %.1fs", self.timeout)
            return StepResult.error("timeout")
        except httpx.TimeoutException:
            logger.warning("Completion transport timed out after %.1fs", self.timeout)
            return StepResult.error("timeout")
        except httpx.HTTPError as e:
            logger.warning("Completion transport error: %s", e)
            return StepResult.error(f"transport error: {e}")
        except CompletionFailure as e:
            logger.warning("Completion failed (%s): %s", e.code, e.message)
            return StepResult.error(e.code)

        logger.info(
            "Completion received (%d chars) in %.0fms",
            len(content),
            (time.monotonic() - started) * 1000,
        )
        return StepResult.ok(content)
