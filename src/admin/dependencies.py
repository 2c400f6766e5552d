"""FastAPI dependencies for admin API authentication."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Cookie, Depends, Header
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.admin.auth import get_session
from src.errors import StoreUnavailable, Unauthorized
from src.redis_client import get_redis

logger = structlog.get_logger()


@dataclass(frozen=True)
class AdminUser:
    user_id: str
    email: str = ""


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_admin(
    authorization: Optional[str] = Header(None),
    admin_token: Optional[str] = Cookie(None),
    redis: Redis = Depends(get_redis),
) -> AdminUser:
    """Resolve the signed-in operator or raise Unauthorized."""
    token = bearer_token(authorization) or admin_token
    if not token:
        raise Unauthorized()

    try:
        session = await get_session(redis, token)
    except RedisError as e:
        logger.error("admin_session_lookup_failed", error=str(e))
        raise StoreUnavailable("Session store is temporarily unavailable, please retry") from e

    if not session or not session.get("user_id"):
        raise Unauthorized("Session expired or invalid, please sign in again")

    return AdminUser(user_id=str(session["user_id"]), email=session.get("email") or "")
