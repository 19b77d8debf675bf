"""
照片库跨存储协调器
同时写对象存储和元数据库的操作只能经过这里

上传：先写对象存储，全部结束后一次性批量写入元数据；
      元数据写入失败时已上传的文件成为孤儿，记录日志并抛出 OrphanedBlobsException
删除：先在一个事务内删除元数据并清除封面引用，提交后再尽力删除文件；
      文件删除失败只记录，不影响结果
"""

import re
import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Iterable

from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import ValidationException, RepositoryException, OrphanedBlobsException
from core.events import event_bus, Event, Events
from utils.timezone import utc_now
from .photo_vault_blob import BlobStore, BlobUpload, BlobFailure
from .photo_vault_models import Album, Photo
from .photo_vault_services import AlbumService, PhotoService

logger = logging.getLogger(__name__)

MODULE_ID = "photo_vault"

# 超时上传及其回收任务的强引用，任务结束后移除
_background_tasks = set()


@dataclass
class UploadItem:
    """待上传文件"""
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class UploadFailure:
    filename: str
    reason: str


@dataclass
class UploadResult:
    """批量上传结果（部分成功）"""
    album_id: int
    succeeded: List[Photo] = field(default_factory=list)
    failed: List[UploadFailure] = field(default_factory=list)


@dataclass
class DeleteResult:
    """单张删除结果"""
    photo_id: int
    blob_id: str
    blob_deleted: bool


@dataclass
class BulkDeleteResult:
    """批量删除结果"""
    deleted_count: int = 0
    blob_failures: List[BlobFailure] = field(default_factory=list)
    not_found_ids: List[int] = field(default_factory=list)


def folder_hint(root: str, album_name: str) -> str:
    """相册名中非字母数字字符替换为下划线，作为存储目录"""
    safe = re.sub(r"[^a-zA-Z0-9]", "_", album_name or "")
    return f"{root.rstrip('/')}/{safe}" if safe else root.rstrip("/")


def default_title(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return filename.rsplit(".", 1)[0] if "." in filename else filename


class UploadCoordinator:
    """上传协调器"""

    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.settings = get_settings()

    def _check_item(self, item: UploadItem) -> Optional[str]:
        """单文件校验，返回失败原因"""
        if item.content_type not in self.settings.photo_allowed_types:
            return f"不支持的文件类型: {item.content_type or '未知'}"
        if not item.content:
            return "文件内容为空"
        if len(item.content) > self.settings.photo_max_file_size:
            limit_mb = self.settings.photo_max_file_size // (1024 * 1024)
            return f"文件大小超出限制（最大 {limit_mb}MB）"
        return None

    async def _upload_one(self, item: UploadItem, folder: str, album_id: int):
        """
        上传单个文件，失败返回 UploadFailure 而不抛出

        超时只取消等待，底层写入可能仍会完成；此时由 _discard_late_upload 回收
        """
        task = asyncio.ensure_future(self.blob_store.upload(item.content, folder, item.filename))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.settings.blob_timeout_seconds)
        except asyncio.TimeoutError:
            reason = "上传超时"
            _background_tasks.add(task)
            task.add_done_callback(lambda t: self._discard_late_upload(t, album_id))
        except Exception as e:
            reason = str(e) or type(e).__name__
        logger.warning(f"文件上传失败 {item.filename}: {reason}")
        return UploadFailure(filename=item.filename, reason=reason)

    def _discard_late_upload(self, task: asyncio.Future, album_id: int) -> None:
        """超时后才完成的上传不会写入元数据，尽力删除其文件"""
        _background_tasks.discard(task)
        if task.cancelled() or task.exception() is not None:
            return
        cleanup = asyncio.ensure_future(self._delete_late_blob(task.result(), album_id))
        _background_tasks.add(cleanup)
        cleanup.add_done_callback(_background_tasks.discard)

    async def _delete_late_blob(self, blob: BlobUpload, album_id: int) -> None:
        try:
            await asyncio.wait_for(self.blob_store.delete(blob.blob_id), timeout=self.settings.blob_timeout_seconds)
        except Exception as e:
            await self._report_orphans([blob], album_id, f"超时上传的文件删除失败: {str(e) or type(e).__name__}")
            return
        logger.warning(f"超时上传的文件已删除: {blob.blob_id}")

    async def upload(self, items: List[UploadItem], album_id: Optional[int] = None) -> UploadResult:
        """
        批量上传照片

        单个文件失败记入 failed，不中断批次；目标相册无效或元数据写入失败才抛出
        """
        if not items:
            raise ValidationException("请选择要上传的文件")
        if len(items) > self.settings.photo_max_batch:
            raise ValidationException(f"单次最多上传 {self.settings.photo_max_batch} 个文件")

        album = await AlbumService.resolve_target(self.db, album_id)
        target_id, folder = album.id, folder_hint(self.settings.photo_folder_root, album.name)
        result = UploadResult(album_id=target_id)

        accepted = []
        for item in items:
            reason = self._check_item(item)
            if reason:
                result.failed.append(UploadFailure(filename=item.filename, reason=reason))
            else:
                accepted.append(item)

        # 等待全部上传结束后才进入元数据阶段
        outcomes = await asyncio.gather(*(self._upload_one(item, folder, target_id) for item in accepted))

        uploads, titles = [], []
        for item, outcome in zip(accepted, outcomes):
            if isinstance(outcome, UploadFailure):
                result.failed.append(outcome)
            else:
                uploads.append(outcome)
                titles.append(default_title(item.filename))

        if uploads:
            result.succeeded = await self._insert_metadata(uploads, target_id, titles)
            await event_bus.publish(Event(
                name=Events.PHOTOS_UPLOADED,
                source=MODULE_ID,
                data={"album_id": target_id, "photo_ids": [p.id for p in result.succeeded]}
            ))

        logger.info(
            f"批量上传完成: 相册 {target_id}，成功 {len(result.succeeded)}，失败 {len(result.failed)}"
        )
        return result

    async def register(
        self,
        blobs: List[BlobUpload],
        album_id: Optional[int] = None,
        titles: Optional[List[Optional[str]]] = None,
    ) -> List[Photo]:
        """
        为已存在于对象存储中的文件登记元数据

        用于 OrphanedBlobsException 之后的重试
        """
        if not blobs:
            raise ValidationException("没有需要登记的文件")
        for blob in blobs:
            if not blob.blob_id or not blob.url:
                raise ValidationException("文件描述缺少 blob_id 或 url")

        blob_ids = [b.blob_id for b in blobs]
        if len(set(blob_ids)) != len(blob_ids):
            raise ValidationException("登记列表中存在重复的 blob_id")

        # 已有照片引用的文件不是孤儿，不能再次登记
        existing = (await self.db.execute(
            select(Photo.blob_id).where(Photo.blob_id.in_(blob_ids))
        )).scalars().all()
        if existing:
            raise ValidationException("文件已登记", errors=sorted(existing))

        album = await AlbumService.resolve_target(self.db, album_id)
        photos = await self._insert_metadata(blobs, album.id, titles or [None] * len(blobs))
        await event_bus.publish(Event(
            name=Events.PHOTOS_UPLOADED,
            source=MODULE_ID,
            data={"album_id": album.id, "photo_ids": [p.id for p in photos]}
        ))
        return photos

    async def _insert_metadata(
        self,
        uploads: List[BlobUpload],
        album_id: int,
        titles: Iterable[Optional[str]],
    ) -> List[Photo]:
        """一次性写入全部照片记录并更新相册计数"""
        now = utc_now()
        photos = [
            Photo(
                album_id=album_id,
                blob_id=u.blob_id,
                url=u.url,
                thumbnail_url=u.thumbnail_url,
                title=title,
                width=u.width,
                height=u.height,
                file_size=u.size_bytes,
                format=u.format,
                is_favorite=False,
                upload_date=now,
                created_at=now,
            )
            for u, title in zip(uploads, titles)
        ]
        try:
            self.db.add_all(photos)
            await self.db.flush()
            await AlbumService.adjust_photo_count(self.db, album_id, len(photos))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            await self._report_orphans(uploads, album_id, str(e))
            raise OrphanedBlobsException(
                blobs=[u.to_dict() for u in uploads],
                album_id=album_id,
                reason=str(e)
            ) from e
        return photos

    async def _report_orphans(self, uploads: List[BlobUpload], album_id: int, reason: str):
        """记录孤儿文件，供人工或定时任务对账"""
        timestamp = utc_now().isoformat()
        for u in uploads:
            logger.error(
                f"[孤儿文件] blob_id={u.blob_id} album_id={album_id} time={timestamp} reason={reason}"
            )
        await event_bus.publish(Event(
            name=Events.BLOBS_ORPHANED,
            source=MODULE_ID,
            data={
                "album_id": album_id,
                "blob_ids": [u.blob_id for u in uploads],
                "reason": reason,
                "timestamp": timestamp,
            }
        ))


class DeletionCoordinator:
    """删除协调器"""

    def __init__(self, db: AsyncSession, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.settings = get_settings()

    async def _delete_rows(self, rows) -> None:
        """删除元数据、清除封面引用、回收相册计数，并提交"""
        photo_ids = [r.id for r in rows]
        per_album = Counter(r.album_id for r in rows)
        try:
            await self.db.execute(
                update(Album)
                .where(Album.cover_photo_id.in_(photo_ids))
                .values(cover_photo_id=None)
            )
            await self.db.execute(
                delete(Photo)
                .where(Photo.id.in_(photo_ids))
                .execution_options(synchronize_session="fetch")
            )
            for album_id, count in per_album.items():
                await AlbumService.adjust_photo_count(self.db, album_id, -count)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"删除照片元数据失败 {photo_ids}: {e}")
            raise RepositoryException(f"删除照片失败: {e}") from e

    async def delete_one(self, photo_id: int) -> DeleteResult:
        """
        删除单张照片

        元数据删除失败直接抛出；文件删除失败只记录日志
        """
        photo = await PhotoService.require_photo(self.db, photo_id)
        blob_id = photo.blob_id

        await self._delete_rows([photo])

        blob_deleted = True
        try:
            await asyncio.wait_for(self.blob_store.delete(blob_id), timeout=self.settings.blob_timeout_seconds)
        except asyncio.TimeoutError:
            blob_deleted = False
            logger.warning(f"删除文件超时，遗留孤儿文件: {blob_id}")
        except Exception as e:
            blob_deleted = False
            logger.warning(f"删除文件失败，遗留孤儿文件 {blob_id}: {e}")

        await event_bus.publish(Event(
            name=Events.PHOTOS_DELETED,
            source=MODULE_ID,
            data={"photo_ids": [photo_id], "blob_failures": [] if blob_deleted else [blob_id]}
        ))
        logger.info(f"删除照片: {photo_id}")
        return DeleteResult(photo_id=photo_id, blob_id=blob_id, blob_deleted=blob_deleted)

    async def delete_many(self, photo_ids: List[int]) -> BulkDeleteResult:
        """
        批量删除照片

        一次读取全部 blob_id，元数据一次性删除后再批量删除文件
        """
        ids = list(dict.fromkeys(photo_ids or []))
        if not ids:
            raise ValidationException("请选择要删除的照片")

        rows = (await self.db.execute(
            select(Photo.id, Photo.blob_id, Photo.album_id)
            .where(Photo.id.in_(ids))
            .with_for_update()
        )).all()

        found = {r.id for r in rows}
        result = BulkDeleteResult(not_found_ids=[i for i in ids if i not in found])
        if not rows:
            # 释放读事务
            await self.db.rollback()
            return result

        await self._delete_rows(rows)
        result.deleted_count = len(rows)

        blob_ids = [r.blob_id for r in rows]
        try:
            outcome = await self.blob_store.bulk_delete(blob_ids)
            result.blob_failures = list(outcome.failed)
        except Exception as e:
            reason = str(e) or type(e).__name__
            result.blob_failures = [BlobFailure(blob_id=b, reason=reason) for b in blob_ids]

        for failure in result.blob_failures:
            logger.warning(f"删除文件失败，遗留孤儿文件 {failure.blob_id}: {failure.reason}")

        await event_bus.publish(Event(
            name=Events.PHOTOS_DELETED,
            source=MODULE_ID,
            data={
                "photo_ids": sorted(found),
                "blob_failures": [f.blob_id for f in result.blob_failures],
            }
        ))
        logger.info(f"批量删除照片: {result.deleted_count} 张，文件删除失败 {len(result.blob_failures)} 个")
        return result
