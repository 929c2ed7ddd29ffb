"""
Client for the Supabase Auth (GoTrue) REST API.

Only three calls are needed:

- ``GET  /auth/v1/user``                      : token introspection
- ``POST /auth/v1/token?grant_type=password`` : admin password login
- ``POST /auth/v1/logout``                    : revoke an admin session
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from resolve.config import settings
from resolve.errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class IdentityUser:
    """The subset of a Supabase auth user the backend relies on."""

    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityUser":
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            user_metadata=payload.get("user_metadata") or {},
        )


class SupabaseAuthClient:
    """Thin async wrapper around the identity provider."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_ANON_KEY
        self.timeout = httpx.Timeout(float(settings.SUPABASE_TIMEOUT), connect=10.0)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def get_user(self, token: str) -> IdentityUser:
        """
        Introspect *token*.

        Raises ``Unauthorized`` when the token is rejected or the provider
        cannot be reached.
        """
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers=self._headers(token),
                )
        except httpx.HTTPError as exc:
            logger.error("get_user: identity provider unreachable: %s", exc)
            raise Unauthorized("Authentication failed") from exc

        if resp.status_code != 200:
            logger.info("get_user: token rejected (HTTP %d)", resp.status_code)
            raise Unauthorized("Invalid or expired token")

        payload = resp.json()
        if not payload.get("id"):
            raise Unauthorized("Invalid or expired token")
        return IdentityUser.from_payload(payload)

    async def sign_in_with_password(self, email: str, password: str) -> Tuple[str, IdentityUser]:
        """Exchange credentials for an access token."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/auth/v1/token",
                    params={"grant_type": "password"},
                    headers=self._headers(),
                    json={"email": email, "password": password},
                )
        except httpx.HTTPError as exc:
            logger.error("sign_in_with_password: identity provider unreachable: %s", exc)
            raise Unauthorized("Authentication failed") from exc

        if resp.status_code != 200:
            logger.info("sign_in_with_password: rejected for %s (HTTP %d)", email, resp.status_code)
            raise Unauthorized("Invalid email or password")

        payload = resp.json()
        token = payload.get("access_token")
        user = payload.get("user") or {}
        if not token or not user.get("id"):
            raise Unauthorized("Invalid email or password")
        return token, IdentityUser.from_payload(user)

    async def sign_out(self, token: str) -> bool:
        """Revoke *token*.  Returns False instead of raising on failure."""
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/auth/v1/logout",
                    headers=self._headers(token),
                )
        except httpx.HTTPError as exc:
            logger.warning("sign_out: identity provider unreachable: %s", exc)
            return False
        return resp.status_code in (200, 204)


def get_identity_provider() -> SupabaseAuthClient:
    """FastAPI dependency; overridden in tests."""
    return SupabaseAuthClient()
