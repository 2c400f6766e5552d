"""Admin session storage in Redis.

Sign-in itself belongs to the external auth provider. Once it has verified
an operator, it stores a session here and hands the token to the dashboard,
which sends it back as ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import json
import secrets
from typing import Optional

import structlog
from redis.asyncio import Redis

from src.config import settings

logger = structlog.get_logger()

SESSION_PREFIX = "admin_session:"


async def create_session(redis: Redis, user_id: str, email: str = "") -> str:
    """Create admin session in Redis.

    Args:
        redis: Redis client
        user_id: Operator id from the auth provider
        email: Operator email for display

    Returns:
        Session token (random string)
    """
    token = secrets.token_urlsafe(32)
    session_data = json.dumps({"user_id": user_id, "email": email})

    await redis.setex(
        f"{SESSION_PREFIX}{token}",
        settings.admin_session_ttl_seconds,
        session_data,
    )

    logger.info("admin_session_created", user_id=user_id)
    return token


async def get_session(redis: Redis, token: str) -> Optional[dict]:
    """Get session data from Redis.

    Returns:
        Session dict with user_id and email, or None
    """
    if not token:
        return None

    data = await redis.get(f"{SESSION_PREFIX}{token}")
    if not data:
        return None

    try:
        session = json.loads(data)
    except (json.JSONDecodeError, TypeError):
        return None
    return session if isinstance(session, dict) else None


async def delete_session(redis: Redis, token: str) -> None:
    """Delete admin session from Redis."""
    await redis.delete(f"{SESSION_PREFIX}{token}")
