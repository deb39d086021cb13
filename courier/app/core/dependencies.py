"""
FastAPI dependencies.

Resolves the bearer token into the caller's claims (rejecting revoked
tokens and deactivated accounts) and hands out the outbound HTTP clients.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from courier.app.core.jwt import decode_access_token
from courier.app.core.token_revocation import is_token_revoked
from courier.app.db.session import get_db
from courier.app.models.user import User
from courier.app.services.route_fetcher import RouteFetcher
from courier.app.services.status_outbox import OutboxDispatcher

# HTTP Bearer security scheme
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Raw bearer token, used by logout to revoke it."""
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Checks, in order:
    1. Token signature and expiry
    2. Token not revoked by logout
    3. User still exists and is active

    Returns:
        Decoded token payload (sub, user_id, role)

    Raises:
        HTTPException: 401 for token problems, 403 for inactive accounts
    """
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return payload


def get_route_fetcher() -> RouteFetcher:
    """Directions client; tests override this to inject a mock transport."""
    return RouteFetcher()


def get_outbox_dispatcher() -> OutboxDispatcher:
    return OutboxDispatcher()
