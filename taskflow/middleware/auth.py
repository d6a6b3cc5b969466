"""
Authentication dependencies.

Protects HTTP routes with the same JWT access tokens the WebSocket
handshake accepts.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from taskflow.exceptions import UnauthorizedError
from taskflow.services.auth import Identity


async def get_bearer_token(
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
) -> Identity:
    """
    Get the authenticated identity.

    Raises 401 if the token is missing, invalid or expired.
    """
    if not token:
        raise UnauthorizedError("Token not provided")

    identity = request.app.state.token_verifier.verify(token)
    if identity is None:
        raise UnauthorizedError("Invalid or expired token")

    return identity
