"""Admin session routes: handover from the sign-in provider, and logout."""

from __future__ import annotations

import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Cookie, Depends, Header, Response
from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.admin.auth import create_session, delete_session
from src.admin.dependencies import bearer_token
from src.config import settings
from src.errors import StoreUnavailable, Unauthorized
from src.redis_client import get_redis
from src.schemas.admin import AdminSessionIn, AdminSessionOut

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["admin-session"])

COOKIE_NAME = "admin_token"


def _handover_allowed(key: Optional[str]) -> bool:
    secret = settings.admin_handover_secret
    return bool(secret) and bool(key) and secrets.compare_digest(key.encode(), secret.encode())


@router.post("/session", response_model=AdminSessionOut, status_code=201)
async def open_session(
    data: AdminSessionIn,
    response: Response,
    x_handover_key: Optional[str] = Header(None),
    redis: Redis = Depends(get_redis),
) -> AdminSessionOut:
    """Start a dashboard session for an operator verified by the sign-in provider."""
    if not _handover_allowed(x_handover_key):
        logger.warning("admin_session_handover_rejected", user_id=data.user_id)
        raise Unauthorized("Session handover is not allowed")

    try:
        token = await create_session(redis, data.user_id, str(data.email or ""))
    except RedisError as e:
        logger.error("admin_session_create_failed", error=str(e))
        raise StoreUnavailable("Session store is temporarily unavailable, please retry") from e

    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=settings.admin_session_ttl_seconds,
    )
    return AdminSessionOut(token=token, expires_in=settings.admin_session_ttl_seconds)


@router.post("/logout", status_code=204)
async def logout(
    authorization: Optional[str] = Header(None),
    admin_token: Optional[str] = Cookie(None),
    redis: Redis = Depends(get_redis),
) -> Response:
    """Drop the session. Logging out without a session is a no-op."""
    token = bearer_token(authorization) or admin_token
    if token:
        try:
            await delete_session(redis, token)
        except RedisError as e:
            logger.error("admin_session_delete_failed", error=str(e))
            raise StoreUnavailable("Session store is temporarily unavailable, please retry") from e
        logger.info("admin_logout")

    response = Response(status_code=204)
    response.delete_cookie(COOKIE_NAME)
    return response
