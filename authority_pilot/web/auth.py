"""Bearer-token authentication against Supabase."""
from typing import Optional

from fastapi import Request
from loguru import logger

from authority_pilot.database import db, AuthUser
from authority_pilot.errors import APIError


def get_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(request: Request) -> AuthUser:
    """Dependency resolving the Supabase user behind the bearer token."""
    token = get_bearer_token(request)
    if not token:
        raise APIError(401, "Unauthorized")
    try:
        user = await db.get_user_from_token(token)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        user = None
    if not user:
        raise APIError(401, "Unauthorized")
    return user
