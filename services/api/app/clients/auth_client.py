"""
Authentication provider client.

Resolves a bearer access token to the id of the user it was issued to by
calling the provider's user endpoint:

  GET {auth_url}/auth/v1/user
  Authorization: Bearer <token>
  apikey: <project api key>

  200 → { "id": "<uuid>", "email": ..., ... }
  401 → token expired / revoked / forged

Any failure (non-2xx, transport error, malformed body) resolves to None;
the caller turns that into a 401.
"""
import logging
from typing import Optional

import httpx

from app.config import settings
from app.telemetry import AUTH_FAILURES_TOTAL

logger = logging.getLogger(__name__)


class AuthClient:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._http: Optional[httpx.AsyncClient] = None
        self._transport = transport

    async def start(self) -> None:
        self._http = httpx.AsyncClient(
            base_url=settings.auth_url,
            timeout=settings.auth_timeout_seconds,
            transport=self._transport,
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def resolve_user_id(self, token: str) -> Optional[str]:
        """Return the user id the token belongs to, or None if it cannot be resolved."""
        if self._http is None:
            await self.start()

        headers = {"Authorization": f"Bearer {token}"}
        if settings.auth_api_key:
            headers["apikey"] = settings.auth_api_key

        try:
            resp = await self._http.get("/auth/v1/user", headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Auth provider unreachable: %s", exc)
            AUTH_FAILURES_TOTAL.labels(reason="provider_error").inc()
            return None

        if resp.status_code != 200:
            logger.info("Auth provider rejected token (status=%s)", resp.status_code)
            AUTH_FAILURES_TOTAL.labels(reason="rejected").inc()
            return None

        try:
            user_id = resp.json().get("id")
        except (ValueError, AttributeError):
            user_id = None

        if not user_id:
            logger.warning("Auth provider returned a user without an id")
            AUTH_FAILURES_TOTAL.labels(reason="provider_error").inc()
            return None
        return str(user_id)


# Singleton
auth_client = AuthClient()
