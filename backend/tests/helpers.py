"""Fake completion and auth endpoints shared by the tests."""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable

import httpx

from src.services.completion import CompletionClient
from src.services.identity import IdentityResolver

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]

AUTH_URL = "https://auth.test/auth/v1/user"
VALID_TOKEN = "valid-token"
USER_ID = "user-123"


def completion_response(content: str) -> httpx.Response:
    return httpx.Response(
        200, json={"choices": [{"message": {"role": "assistant", "content": content}}]}
    )


def grounded_echo(request: httpx.Request) -> httpx.Response:
    """Answers with only the ppm values and record tags present in the system prompt."""
    body = json.loads(request.content)
    system = body["messages"][0]["content"]
    values = re.findall(r"\d+ ppm", system)
    tags = re.findall(r"\[(?:product|rule):[^\]]+\]", system)
    return completion_response(
        f"Official value: {', '.join(values) or 'none'}.\n\n"
        f"Justification: {' '.join(tags)}"
    )


def make_completion(
    handler: Handler = grounded_echo,
    *,
    api_key: str = "test-key",
    timeout: float = 5.0,
) -> CompletionClient:
    return CompletionClient(
        api_key=api_key,
        base_url="https://llm.test/v1",
        model="test-model",
        timeout=timeout,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def auth_server(request: httpx.Request) -> httpx.Response:
    if request.headers.get("Authorization") == f"Bearer {VALID_TOKEN}":
        return httpx.Response(200, json={"id": USER_ID, "email": "dentist@example.com"})
    return httpx.Response(401, json={"msg": "invalid JWT"})


def make_identity(
    handler: Handler = auth_server, *, required: bool = False, user_url: str = AUTH_URL
) -> IdentityResolver:
    return IdentityResolver(
        user_url=user_url,
        api_key="anon-key",
        required=required,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
