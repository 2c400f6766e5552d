"""Tests for admin sessions and the admin API dependency."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.admin.auth import SESSION_PREFIX, create_session, delete_session, get_session
from src.admin.dependencies import AdminUser, bearer_token, get_current_admin
from src.config import settings
from src.errors import StoreUnavailable, Unauthorized


@pytest.fixture
def mock_redis():
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    return redis


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_session_stores_json_with_ttl(self, mock_redis):
        token = await create_session(mock_redis, "op-1", "ops@example.com")

        mock_redis.setex.assert_awaited_once()
        key, ttl, payload = mock_redis.setex.await_args.args
        assert key == f"{SESSION_PREFIX}{token}"
        assert ttl == settings.admin_session_ttl_seconds
        assert json.loads(payload) == {"user_id": "op-1", "email": "ops@example.com"}

    @pytest.mark.asyncio
    async def test_get_session(self, mock_redis):
        mock_redis.get.return_value = json.dumps({"user_id": "op-1", "email": ""})
        session = await get_session(mock_redis, "abc")
        mock_redis.get.assert_awaited_once_with("admin_session:abc")
        assert session["user_id"] == "op-1"

    @pytest.mark.asyncio
    async def test_get_session_garbage(self, mock_redis):
        mock_redis.get.return_value = "not json"
        assert await get_session(mock_redis, "abc") is None

    @pytest.mark.asyncio
    async def test_get_session_empty_token(self, mock_redis):
        assert await get_session(mock_redis, "") is None
        mock_redis.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_session(self, mock_redis):
        await delete_session(mock_redis, "abc")
        mock_redis.delete.assert_awaited_once_with("admin_session:abc")


class TestBearerToken:
    def test_parses_bearer(self):
        assert bearer_token("Bearer abc123") == "abc123"
        assert bearer_token("bearer abc123") == "abc123"

    def test_rejects_other_schemes(self):
        assert bearer_token("Basic abc123") is None
        assert bearer_token("Bearer ") is None
        assert bearer_token(None) is None


class TestGetCurrentAdmin:
    @pytest.mark.asyncio
    async def test_no_token(self, mock_redis):
        with pytest.raises(Unauthorized):
            await get_current_admin(authorization=None, admin_token=None, redis=mock_redis)

    @pytest.mark.asyncio
    async def test_expired_session(self, mock_redis):
        with pytest.raises(Unauthorized) as exc_info:
            await get_current_admin(authorization="Bearer gone", admin_token=None, redis=mock_redis)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_bearer(self, mock_redis):
        mock_redis.get.return_value = json.dumps({"user_id": "op-1", "email": "ops@example.com"})
        admin = await get_current_admin(authorization="Bearer tok", admin_token=None, redis=mock_redis)
        assert admin == AdminUser(user_id="op-1", email="ops@example.com")

    @pytest.mark.asyncio
    async def test_cookie_fallback(self, mock_redis):
        mock_redis.get.return_value = json.dumps({"user_id": "op-2"})
        admin = await get_current_admin(authorization=None, admin_token="tok", redis=mock_redis)
        assert admin.user_id == "op-2"
        mock_redis.get.assert_awaited_once_with("admin_session:tok")

    @pytest.mark.asyncio
    async def test_redis_down_is_retryable(self, mock_redis):
        mock_redis.get.side_effect = RedisConnectionError("connection refused")
        with pytest.raises(StoreUnavailable) as exc_info:
            await get_current_admin(authorization="Bearer tok", admin_token=None, redis=mock_redis)
        assert "retry" in exc_info.value.message
