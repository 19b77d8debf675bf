"""
认证路由
管理员登录，签发访问令牌
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from core.config import get_settings
from core.errors import AuthException, ErrorCode
from core.security import authenticate_admin, create_token, get_current_user, TokenData, TokenResponse
from schemas.response import success

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["认证"])


class AdminLogin(BaseModel):
    """登录请求"""
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=200)


@router.post("/login")
async def login(data: AdminLogin, request: Request):
    """管理员登录"""
    client_ip = request.client.host if request.client else "unknown"

    token_data = authenticate_admin(data.username, data.password)
    if token_data is None:
        logger.warning(f"登录失败 - IP: {client_ip}, 用户名: {data.username}")
        raise AuthException(ErrorCode.LOGIN_FAILED)

    settings = get_settings()
    expires_in = settings.jwt_expire_minutes * 60
    token = create_token(token_data, timedelta(seconds=expires_in))
    logger.info(f"管理员登录 - IP: {client_ip}, 用户名: {data.username}")

    return success(
        TokenResponse(access_token=token, expires_in=expires_in).model_dump(),
        "登录成功"
    )


@router.get("/me")
async def get_me(user: TokenData = Depends(get_current_user)):
    """获取当前登录身份"""
    return success(user.model_dump())
