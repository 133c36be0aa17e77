"""
Caller identity for authenticated endpoints.

The bearer credential from the Authorization header is resolved through
the auth provider; anything short of a resolved user id is Unauthorized.
"""
from typing import Optional

from fastapi import Header

from app.clients.auth_client import auth_client
from app.errors import Unauthorized
from app.telemetry import AUTH_FAILURES_TOTAL


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    token = bearer_token(authorization)
    if token is None:
        AUTH_FAILURES_TOTAL.labels(reason="missing_token").inc()
        raise Unauthorized()

    user_id = await auth_client.resolve_user_id(token)
    if user_id is None:
        raise Unauthorized()
    return user_id
