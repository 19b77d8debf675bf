"""
对象存储网关
照片二进制文件的上传与删除

BlobStore 是抽象接口，业务层只依赖它；LocalBlobStore 是落盘到本地目录的实现，
对外暴露的 URL 由 blob_public_base_url 拼接
"""

import io
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from pathlib import PurePosixPath
from typing import List, Optional

from PIL import Image, UnidentifiedImageError

from core.config import get_settings
from core.errors import BlobStoreException
from utils.storage import StorageManager, get_storage_manager

logger = logging.getLogger(__name__)


@dataclass
class BlobUpload:
    """上传成功后的文件描述"""
    blob_id: str
    url: str
    thumbnail_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    size_bytes: int = 0
    format: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BlobFailure:
    """单个文件的删除失败"""
    blob_id: str
    reason: str


@dataclass
class BulkDeleteOutcome:
    """批量删除结果"""
    deleted: List[str] = field(default_factory=list)
    failed: List[BlobFailure] = field(default_factory=list)


class BlobStore(ABC):
    """对象存储接口"""

    #: 批量删除时单批最大数量
    bulk_chunk_size: int = 100
    #: 单个调用超时（秒）
    timeout_seconds: float = 60.0

    @abstractmethod
    async def upload(self, content: bytes, folder: str, filename: Optional[str] = None) -> BlobUpload:
        """
        上传单个文件

        Raises:
            BlobStoreException: 上传失败
        """

    @abstractmethod
    async def delete(self, blob_id: str) -> None:
        """
        删除单个文件（文件不存在视为成功）

        Raises:
            BlobStoreException: 删除失败
        """

    async def bulk_delete(self, blob_ids: List[str]) -> BulkDeleteOutcome:
        """
        批量删除，按 bulk_chunk_size 分批并发执行

        单个文件失败只记入结果，不会中断其余文件
        """
        outcome = BulkDeleteOutcome()
        for start in range(0, len(blob_ids), self.bulk_chunk_size):
            chunk = blob_ids[start:start + self.bulk_chunk_size]
            results = await asyncio.gather(
                *(asyncio.wait_for(self.delete(blob_id), timeout=self.timeout_seconds) for blob_id in chunk),
                return_exceptions=True
            )
            for blob_id, result in zip(chunk, results):
                if isinstance(result, asyncio.TimeoutError):
                    outcome.failed.append(BlobFailure(blob_id=blob_id, reason="删除超时"))
                elif isinstance(result, BaseException):
                    outcome.failed.append(BlobFailure(blob_id=blob_id, reason=str(result) or type(result).__name__))
                else:
                    outcome.deleted.append(blob_id)
        return outcome


class LocalBlobStore(BlobStore):
    """
    本地文件系统实现

    blob_id 为相对 upload_dir 的路径，缩略图存放在同级 thumbs/ 目录下
    """

    def __init__(
        self,
        storage: Optional[StorageManager] = None,
        public_base_url: Optional[str] = None,
        thumbnail_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.storage = storage or get_storage_manager()
        self.public_base_url = (public_base_url or settings.blob_public_base_url).rstrip("/")
        size = thumbnail_size or settings.thumbnail_size
        self.thumbnail_size = (size, size)
        self.timeout_seconds = settings.blob_timeout_seconds
        self.bulk_chunk_size = settings.blob_bulk_delete_chunk

    def public_url(self, blob_id: str) -> str:
        return f"{self.public_base_url}/{blob_id}"

    @staticmethod
    def thumbnail_id(blob_id: str) -> str:
        """由 blob_id 推导缩略图路径"""
        path = PurePosixPath(blob_id)
        return str(path.parent / "thumbs" / f"{path.stem}.jpg")

    def _make_thumbnail(self, img: Image.Image) -> bytes:
        img = img.copy()
        img.thumbnail(self.thumbnail_size, Image.Resampling.LANCZOS)

        # 透明图片铺白底后转 RGB，以便保存为 JPEG
        if img.mode in ('RGBA', 'LA', 'P'):
            img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        buffer = io.BytesIO()
        img.save(buffer, 'JPEG', quality=85)
        return buffer.getvalue()

    def _store(self, content: bytes, folder: str, filename: Optional[str]) -> BlobUpload:
        width, height, fmt, thumb_bytes = None, None, None, None
        try:
            with Image.open(io.BytesIO(content)) as img:
                width, height = img.size
                fmt = (img.format or "").lower() or None
                thumb_bytes = self._make_thumbnail(img)
        except (UnidentifiedImageError, OSError) as e:
            # 无法解析的格式（如未安装 HEIF 插件）仍保存原文件
            logger.warning(f"生成缩略图失败 {filename or ''}: {e}")

        if fmt is None and filename and "." in filename:
            fmt = filename.rsplit(".", 1)[-1].lower()
        ext = "jpg" if fmt == "jpeg" else (fmt or "")

        blob_id, _ = self.storage.generate_path(folder, ext)
        self.storage.write_file(blob_id, content)

        thumbnail_url = None
        if thumb_bytes is not None:
            thumb_id = self.thumbnail_id(blob_id)
            self.storage.write_file(thumb_id, thumb_bytes)
            thumbnail_url = self.public_url(thumb_id)

        return BlobUpload(
            blob_id=blob_id,
            url=self.public_url(blob_id),
            thumbnail_url=thumbnail_url,
            width=width,
            height=height,
            size_bytes=len(content),
            format=fmt,
        )

    async def upload(self, content: bytes, folder: str, filename: Optional[str] = None) -> BlobUpload:
        try:
            return await asyncio.to_thread(self._store, content, folder, filename)
        except (OSError, ValueError) as e:
            logger.error(f"写入文件失败 {filename or ''}: {e}")
            raise BlobStoreException(f"文件写入失败: {e}") from e

    def _remove(self, blob_id: str) -> None:
        self.storage.delete_file(self.thumbnail_id(blob_id))
        self.storage.delete_file(blob_id)

    async def delete(self, blob_id: str) -> None:
        try:
            await asyncio.to_thread(self._remove, blob_id)
        except OSError as e:
            raise BlobStoreException(f"文件删除失败: {e}", blob_id=blob_id) from e


_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    """获取对象存储实例（FastAPI 依赖，测试中可覆盖）"""
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore()
    return _blob_store
