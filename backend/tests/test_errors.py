"""
错误处理模块测试
"""
import pytest
from fastapi import status, FastAPI
from fastapi.responses import JSONResponse
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError

from core.errors import (
    ErrorCode,
    AppException,
    ValidationException,
    AuthException,
    NotFoundException,
    ForbiddenException,
    BlobStoreException,
    RepositoryException,
    OrphanedBlobsException,
    register_exception_handlers,
    error_response,
    ERROR_MESSAGES
)


class TestErrors:
    """错误处理测试"""

    def test_app_exception(self):
        exc = AppException(code=ErrorCode.RESOURCE_NOT_FOUND)
        assert exc.http_status == status.HTTP_404_NOT_FOUND
        assert exc.message == ERROR_MESSAGES[ErrorCode.RESOURCE_NOT_FOUND]
        assert exc.to_dict()["code"] == ErrorCode.RESOURCE_NOT_FOUND

        resp = exc.to_response()
        assert isinstance(resp, JSONResponse)
        assert resp.status_code == status.HTTP_404_NOT_FOUND

    def test_specific_exceptions(self):
        v_exc = ValidationException(errors=["e1"])
        assert v_exc.http_status == status.HTTP_400_BAD_REQUEST
        assert v_exc.data["errors"] == ["e1"]

        assert AuthException().http_status == status.HTTP_401_UNAUTHORIZED
        assert AuthException(ErrorCode.LOGIN_FAILED).message == "用户名或密码错误"

        n_exc = NotFoundException(resource="相册", resource_id=123)
        assert "ID: 123" in n_exc.message

        assert ForbiddenException().http_status == status.HTTP_403_FORBIDDEN

        b_exc = BlobStoreException("boom", blob_id="a/b.jpg")
        assert b_exc.http_status == status.HTTP_502_BAD_GATEWAY
        assert b_exc.data == {"blob_id": "a/b.jpg"}

        assert RepositoryException().code == ErrorCode.DATABASE_ERROR

    def test_orphaned_blobs(self):
        """孤儿文件异常携带可重新登记的文件描述"""
        blobs = [{"blob_id": "portfolio/photos/x.jpg", "url": "/media/portfolio/photos/x.jpg"}]
        exc = OrphanedBlobsException(blobs=blobs, album_id=3, reason="duplicate")

        assert isinstance(exc, RepositoryException)
        assert exc.code == ErrorCode.PHOTO_VAULT_ORPHANED_BLOBS
        assert exc.http_status == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.data == {"album_id": 3, "blobs": blobs, "reason": "duplicate"}

    def test_error_response(self):
        assert error_response(ErrorCode.OPERATION_FAILED) == {
            "code": ErrorCode.OPERATION_FAILED,
            "message": "操作失败",
            "data": None
        }


def build_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/forbidden")
    async def forbidden():
        raise ForbiddenException("不能删除默认相册")

    @app.get("/db")
    async def db_error():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    @app.get("/items/{item_id}")
    async def item(item_id: int):
        return {"id": item_id}

    return app


@pytest.mark.asyncio
class TestExceptionHandlers:
    """异常处理器测试"""

    async def _get(self, path: str):
        async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as ac:
            return await ac.get(path)

    async def test_app_exception(self):
        response = await self._get("/forbidden")

        assert response.status_code == 403
        assert response.json() == {
            "code": ErrorCode.FORBIDDEN_OPERATION,
            "message": "不能删除默认相册",
            "data": None
        }

    async def test_database_error(self):
        response = await self._get("/db")

        assert response.status_code == 500
        assert response.json()["code"] == ErrorCode.DATABASE_ERROR

    async def test_request_validation(self):
        response = await self._get("/items/abc")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == ErrorCode.VALIDATION_ERROR
        assert body["data"]["errors"][0]["field"] == "path.item_id"

    async def test_http_not_found(self):
        response = await self._get("/missing")

        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.RESOURCE_NOT_FOUND
