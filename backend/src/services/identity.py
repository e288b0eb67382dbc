"""Caller identity from the bearer token, verified against the auth server."""

from __future__ import annotations

import logging

import httpx

from src.models.pipeline import Identity
from src.services.errors import ConfigurationError, IdentityError

logger = logging.getLogger(__name__)


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityResolver:
    """Resolves ``Authorization: Bearer`` to a user id via ``GET {user_url}``.

    With ``required`` set, a missing or rejected token raises IdentityError
    (401). Otherwise the caller is downgraded to the anonymous identity.
    """

    def __init__(
        self,
        *,
        user_url: str,
        api_key: str = "",
        required: bool = False,
        anonymous_user_id: str = "anonymous",
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.user_url = user_url
        self.api_key = api_key
        self.required = required
        self.anonymous_user_id = anonymous_user_id
        self.timeout = timeout
        self._http = http_client

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _reject(self, code: str, message: str) -> Identity:
        if self.required:
            raise IdentityError(code, message)
        logger.info("%s; continuing as anonymous caller", message)
        return Identity(user_id=self.anonymous_user_id, anonymous=True)

    async def _lookup(self, token: str) -> str | None:
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        response = await self.http.get(
            self.user_url, headers=headers, timeout=self.timeout
        )
        if response.status_code in (401, 403):
            return None
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected auth response: {type(body).__name__}")
        user_id = body.get("id")
        return str(user_id) if user_id else None

    async def resolve(self, authorization: str | None) -> Identity:
        if self.required and not self.user_url:
            raise ConfigurationError(
                "AUTH_NOT_CONFIGURED",
                "Authentication is required but no auth user URL is configured",
            )

        token = bearer_token(authorization)
        if token is None:
            return self._reject("MISSING_TOKEN", "Missing authorization header")
        if not self.user_url:
            return self._reject("AUTH_DISABLED", "No auth server configured")

        try:
            user_id = await self._lookup(token)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Identity lookup failed: %s", e)
            return self._reject("AUTH_UNAVAILABLE", "Identity could not be verified")

        if user_id is None:
            return self._reject("INVALID_TOKEN", "Unauthorized")
        logger.debug("Resolved caller %s", user_id)
        return Identity(user_id=user_id)
