"""
照片库模块测试夹具
提供内存版对象存储（可注入单个文件失败）和默认相册
"""

import asyncio
from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import BlobStoreException
from main import app
from modules.photo_vault.photo_vault_blob import BlobStore, BlobUpload, get_blob_store
from modules.photo_vault.photo_vault_coordinators import UploadItem
from modules.photo_vault.photo_vault_models import Album
from modules.photo_vault.photo_vault_services import AlbumService


class FakeBlobStore(BlobStore):
    """内存对象存储"""

    def __init__(self):
        self.blobs = {}
        self.fail_uploads = set()   # 按文件名注入上传失败
        self.hang_uploads = set()   # 按文件名注入上传挂起
        self.hang_seconds = 3600.0
        self.fail_deletes = set()   # 按 blob_id 注入删除失败
        self.upload_calls: List[tuple] = []
        self.delete_calls: List[str] = []
        self.fixed_blob_id: Optional[str] = None
        self._counter = 0

    async def upload(self, content: bytes, folder: str, filename: Optional[str] = None) -> BlobUpload:
        self.upload_calls.append((filename, folder))
        if filename in self.hang_uploads:
            await asyncio.sleep(self.hang_seconds)
        if filename in self.fail_uploads:
            raise BlobStoreException(f"模拟上传失败: {filename}")

        self._counter += 1
        blob_id = self.fixed_blob_id or f"{folder}/blob-{self._counter}"
        self.blobs[blob_id] = content
        return BlobUpload(
            blob_id=blob_id,
            url=f"https://cdn.test/{blob_id}",
            thumbnail_url=f"https://cdn.test/thumbs/{blob_id}",
            width=800,
            height=600,
            size_bytes=len(content),
            format="jpeg",
        )

    async def delete(self, blob_id: str) -> None:
        self.delete_calls.append(blob_id)
        if blob_id in self.fail_deletes:
            raise BlobStoreException(f"模拟删除失败: {blob_id}", blob_id=blob_id)
        self.blobs.pop(blob_id, None)


def make_items(count: int, prefix: str = "photo", size: int = 1024) -> List[UploadItem]:
    """构造待上传文件"""
    return [
        UploadItem(filename=f"{prefix}-{i}.jpg", content=b"\xff\xd8" + b"x" * size, content_type="image/jpeg")
        for i in range(count)
    ]


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest_asyncio.fixture
async def default_album(db_session: AsyncSession) -> Album:
    """默认相册（系统初始化时创建）"""
    album = await AlbumService.ensure_default_album(db_session)
    await db_session.commit()
    return album


@pytest_asyncio.fixture
async def vault_client(admin_client: AsyncClient, blob_store: FakeBlobStore, default_album: Album) -> AsyncClient:
    """已登录管理员、使用内存对象存储的客户端"""
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    return admin_client
