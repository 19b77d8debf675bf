"""
标准错误码体系
提供统一的错误码定义和异常处理
"""

import logging
from typing import Optional, Any, Dict
from enum import IntEnum
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    """
    标准错误码

    错误码规范：
    - 0: 成功
    - 1xxx: 系统级错误
    - 2xxx: 认证/授权错误
    - 3xxx: 业务通用错误
    - 4xxx: 模块级错误（各模块自定义）
    - 5xxx: 第三方服务错误
    """

    # ==================== 成功 ====================
    SUCCESS = 0

    # ==================== 系统级错误 (1xxx) ====================
    INTERNAL_ERROR = 1000           # 服务器内部错误
    DATABASE_ERROR = 1001           # 数据库错误
    SERVICE_UNAVAILABLE = 1004      # 服务不可用

    # ==================== 认证/授权错误 (2xxx) ====================
    UNAUTHORIZED = 2001             # 未认证（未登录）
    TOKEN_INVALID = 2003            # 令牌无效
    PERMISSION_DENIED = 2004        # 权限不足
    LOGIN_FAILED = 2007             # 登录失败

    # ==================== 业务通用错误 (3xxx) ====================
    VALIDATION_ERROR = 3001         # 参数验证失败
    RESOURCE_NOT_FOUND = 3002       # 资源不存在
    OPERATION_FAILED = 3005         # 操作失败
    FORBIDDEN_OPERATION = 3006      # 禁止的操作
    FILE_TOO_LARGE = 3009           # 文件过大
    FILE_TYPE_NOT_ALLOWED = 3010    # 文件类型不允许

    # ==================== 模块级错误 (4xxx) ====================
    # 4200-4299: 照片库模块
    PHOTO_VAULT_ORPHANED_BLOBS = 4201   # 元数据写入失败，已上传的文件成为孤儿

    # ==================== 第三方服务错误 (5xxx) ====================
    STORAGE_ERROR = 5004            # 存储服务错误


# 错误码对应的默认消息
ERROR_MESSAGES: Dict[int, str] = {
    ErrorCode.SUCCESS: "操作成功",

    # 系统级
    ErrorCode.INTERNAL_ERROR: "服务器内部错误，请稍后重试",
    ErrorCode.DATABASE_ERROR: "数据库操作失败",
    ErrorCode.SERVICE_UNAVAILABLE: "服务暂时不可用",

    # 认证/授权
    ErrorCode.UNAUTHORIZED: "请先登录",
    ErrorCode.TOKEN_INVALID: "无效的认证凭据",
    ErrorCode.PERMISSION_DENIED: "没有权限执行此操作",
    ErrorCode.LOGIN_FAILED: "用户名或密码错误",

    # 业务通用
    ErrorCode.VALIDATION_ERROR: "参数验证失败",
    ErrorCode.RESOURCE_NOT_FOUND: "请求的资源不存在",
    ErrorCode.OPERATION_FAILED: "操作失败",
    ErrorCode.FORBIDDEN_OPERATION: "不允许执行此操作",
    ErrorCode.FILE_TOO_LARGE: "文件大小超出限制",
    ErrorCode.FILE_TYPE_NOT_ALLOWED: "不支持的文件类型",

    # 模块级
    ErrorCode.PHOTO_VAULT_ORPHANED_BLOBS: "照片已上传但元数据保存失败，请重试登记",

    # 第三方服务
    ErrorCode.STORAGE_ERROR: "存储服务异常",
}

# 错误码对应的 HTTP 状态码
ERROR_HTTP_STATUS: Dict[int, int] = {
    ErrorCode.SUCCESS: status.HTTP_200_OK,

    # 系统级 -> 500
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,

    # 认证/授权 -> 401/403
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.TOKEN_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.LOGIN_FAILED: status.HTTP_401_UNAUTHORIZED,

    # 业务通用 -> 400/403/404
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.OPERATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FORBIDDEN_OPERATION: status.HTTP_403_FORBIDDEN,
    ErrorCode.FILE_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorCode.FILE_TYPE_NOT_ALLOWED: status.HTTP_400_BAD_REQUEST,

    # 模块级
    ErrorCode.PHOTO_VAULT_ORPHANED_BLOBS: status.HTTP_500_INTERNAL_SERVER_ERROR,

    # 第三方服务 -> 502
    ErrorCode.STORAGE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


class AppException(Exception):
    """
    应用异常基类

    用于抛出业务异常，包含错误码和详细信息

    Usage:
        raise AppException(ErrorCode.RESOURCE_NOT_FOUND, "相册不存在")
        raise AppException(ErrorCode.VALIDATION_ERROR, data={"field": "name", "error": "不能为空"})
    """

    def __init__(
        self,
        code: int = ErrorCode.INTERNAL_ERROR,
        message: Optional[str] = None,
        data: Any = None
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "未知错误")
        self.data = data
        self.http_status = ERROR_HTTP_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """转换为 JSONResponse"""
        return JSONResponse(
            status_code=self.http_status,
            content=self.to_dict()
        )

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "code": self.code,
            "message": self.message,
            "data": self.data
        }


class ValidationException(AppException):
    """参数验证异常"""

    def __init__(self, message: str = "参数验证失败", errors: Optional[list] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            data={"errors": errors} if errors else None
        )


class AuthException(AppException):
    """认证异常"""

    def __init__(
        self,
        code: int = ErrorCode.UNAUTHORIZED,
        message: Optional[str] = None
    ):
        super().__init__(code=code, message=message)


class NotFoundException(AppException):
    """资源不存在异常"""

    def __init__(self, resource: str = "资源", resource_id: Any = None):
        message = f"{resource}不存在"
        if resource_id is not None:
            message = f"{resource} (ID: {resource_id}) 不存在"
        super().__init__(
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message=message
        )


class ForbiddenException(AppException):
    """禁止操作异常（如删除默认相册）"""

    def __init__(self, message: str = "不允许执行此操作"):
        super().__init__(
            code=ErrorCode.FORBIDDEN_OPERATION,
            message=message
        )


class BlobStoreException(AppException):
    """对象存储异常（单个文件的上传/删除失败）"""

    def __init__(self, message: str = "存储服务异常", blob_id: Optional[str] = None):
        self.blob_id = blob_id
        super().__init__(
            code=ErrorCode.STORAGE_ERROR,
            message=message,
            data={"blob_id": blob_id} if blob_id else None
        )


class RepositoryException(AppException):
    """元数据存储异常（数据库不可用或约束冲突）"""

    def __init__(
        self,
        message: str = "数据库操作失败",
        code: int = ErrorCode.DATABASE_ERROR,
        data: Any = None
    ):
        super().__init__(code=code, message=message, data=data)


class OrphanedBlobsException(RepositoryException):
    """
    元数据批量写入失败

    文件已写入对象存储，但数据库记录未创建。data 中携带已上传的文件描述，
    调用方可据此重新登记元数据。
    """

    def __init__(self, blobs: list, album_id: Optional[int] = None, reason: str = ""):
        self.blobs = blobs
        self.album_id = album_id
        super().__init__(
            message=ERROR_MESSAGES[ErrorCode.PHOTO_VAULT_ORPHANED_BLOBS],
            code=ErrorCode.PHOTO_VAULT_ORPHANED_BLOBS,
            data={"album_id": album_id, "blobs": blobs, "reason": reason}
        )


# ==================== 异常处理器 ====================

def register_exception_handlers(app):
    """
    注册异常处理器

    在 main.py 中调用：
        from core.errors import register_exception_handlers
        register_exception_handlers(app)
    """
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException
    from sqlalchemy.exc import SQLAlchemyError

    @app.exception_handler(AppException)
    async def handle_app_exception(request, exc: AppException):
        return exc.to_response()

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request, exc: SQLAlchemyError):
        logger.error(f"数据库错误 {request.method} {request.url.path}: {exc}")
        return RepositoryException().to_response()

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"]
            })

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "code": ErrorCode.VALIDATION_ERROR,
                "message": "参数验证失败",
                "data": {"errors": errors}
            }
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request, exc: StarletteHTTPException):
        # 映射 HTTP 状态码到业务错误码
        code_mapping = {
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.PERMISSION_DENIED,
            404: ErrorCode.RESOURCE_NOT_FOUND,
            500: ErrorCode.INTERNAL_ERROR,
        }

        code = code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        message = str(exc.detail) if exc.detail else ERROR_MESSAGES.get(code, "请求失败")

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "code": code,
                "message": message,
                "data": None
            },
            headers=getattr(exc, "headers", None)
        )


# ==================== 响应构建器 ====================

def error_response(
    code: int = ErrorCode.INTERNAL_ERROR,
    message: Optional[str] = None,
    data: Any = None
) -> dict:
    """构建错误响应"""
    return {
        "code": code,
        "message": message or ERROR_MESSAGES.get(code, "操作失败"),
        "data": data
    }
