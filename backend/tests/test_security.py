"""
安全模块单元测试
"""

import pytest
from datetime import timedelta
from httpx import AsyncClient

from core.config import get_settings
from core.security import (
    hash_password,
    verify_password,
    authenticate_admin,
    create_token,
    decode_token,
    TokenData
)


class TestPasswordHashing:
    """密码哈希测试"""

    def test_hash_and_verify(self):
        hashed = hash_password("TestPassword123")

        assert hashed != "TestPassword123"
        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_verify_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAuthenticateAdmin:
    """管理员账户校验测试"""

    def test_plain_password(self):
        settings = get_settings()
        token_data = authenticate_admin(settings.admin_username, settings.admin_password)

        assert token_data is not None
        assert token_data.role == "admin"

    def test_wrong_credentials(self):
        settings = get_settings()
        assert authenticate_admin(settings.admin_username, "wrong") is None
        assert authenticate_admin("someone", settings.admin_password) is None

    def test_hashed_password(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "admin_password", hash_password("s3cret"))

        assert authenticate_admin(settings.admin_username, "s3cret") is not None
        assert authenticate_admin(settings.admin_username, "admin123") is None


class TestToken:
    """JWT 令牌测试"""

    def test_round_trip(self):
        token = create_token(TokenData(username="admin"))
        decoded = decode_token(token)

        assert decoded.username == "admin"
        assert decoded.role == "admin"

    def test_expired_token(self):
        token = create_token(TokenData(username="admin"), expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_garbage_token(self):
        assert decode_token("not.a.token") is None


@pytest.mark.asyncio
class TestAuthRoutes:
    """登录接口测试"""

    async def test_login_success(self, client: AsyncClient):
        settings = get_settings()
        response = await client.post("/api/v1/auth/login", json={
            "username": settings.admin_username,
            "password": settings.admin_password
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token_type"] == "bearer"
        assert decode_token(data["access_token"]).username == settings.admin_username

    async def test_login_failure(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/login", json={"username": "admin", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["code"] == 2007

    async def test_me(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["data"]["username"] == get_settings().admin_username

    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)
