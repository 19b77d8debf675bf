"""
统一鉴权模块
提供JWT令牌生成、验证和密码处理功能

后台为单管理员模型：管理员账户来自配置，不落库
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .config import get_settings

settings = get_settings()

# Bearer令牌认证
security = HTTPBearer()


class TokenData(BaseModel):
    """令牌数据"""
    username: str
    role: str = "admin"


class TokenResponse(BaseModel):
    """令牌响应"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


def hash_password(password: str) -> str:
    """
    加密密码
    bcrypt 限制密码长度不超过 72 字节
    """
    password_bytes = str(password).encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    password_bytes = str(plain_password).encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        return False


def authenticate_admin(username: str, password: str) -> Optional[TokenData]:
    """校验管理员账户，成功返回令牌数据"""
    current = get_settings()
    if username != current.admin_username:
        return None

    # 配置中既可以写明文，也可以写 bcrypt 哈希
    stored = current.admin_password
    if stored.startswith("$2"):
        ok = verify_password(password, stored)
    else:
        ok = hmac.compare_digest(str(password).encode('utf-8'), stored.encode('utf-8'))
    return TokenData(username=username, role="admin") if ok else None


def create_token(data: TokenData, expires_delta: Optional[timedelta] = None) -> str:
    """
    创建JWT访问令牌

    Args:
        data: 令牌数据
        expires_delta: 过期时间增量
    """
    to_encode = data.model_dump()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[TokenData]:
    """解码JWT令牌，无效或过期返回 None"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return TokenData(**payload)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenData:
    """获取当前用户（依赖注入用）"""
    token_data = decode_token(credentials.credentials)

    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭据",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return token_data


def require_admin():
    """仅允许管理员访问（role=admin）"""
    async def admin_checker(user: TokenData = Depends(get_current_user)) -> TokenData:
        if user.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="仅管理员可执行此操作"
            )
        return user
    return admin_checker
