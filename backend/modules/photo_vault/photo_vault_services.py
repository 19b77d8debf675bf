"""
照片库模块业务逻辑
相册与照片的登记维护（只操作元数据库）

约定：
- 服务方法只 flush，不 commit，由调用方（路由或协调器）决定事务边界
- Album.photo_count 只在这里随成员变更在同一事务内增减
"""

import logging
from typing import Optional, List

from sqlalchemy import select, update, func, not_
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationException, NotFoundException, ForbiddenException
from .photo_vault_models import Album, Photo, DEFAULT_ALBUM_NAME, DEFAULT_ALBUM_DESCRIPTION
from .photo_vault_schemas import (
    AlbumCreate, AlbumUpdate, PhotoUpdate, AlbumResponse, PhotoResponse, encode_tags,
)

logger = logging.getLogger(__name__)


def album_to_dict(album: Album, cover_thumbnail: Optional[str] = None, cover_url: Optional[str] = None) -> dict:
    data = AlbumResponse.model_validate(album).model_dump()
    data["cover_thumbnail"] = cover_thumbnail
    data["cover_url"] = cover_url
    return data


def photo_to_dict(photo: Photo, album_name: Optional[str] = None) -> dict:
    data = PhotoResponse.model_validate(photo).model_dump()
    data["album_name"] = album_name
    return data


class AlbumService:
    """
    相册服务类
    维护默认相册、相册增删改和封面引用
    """

    @staticmethod
    async def ensure_default_album(db: AsyncSession) -> Album:
        """
        确保默认相册存在（幂等）
        系统启动时调用，不对外暴露
        """
        result = await db.execute(
            select(Album).where(Album.name == DEFAULT_ALBUM_NAME).order_by(Album.id).limit(1)
        )
        album = result.scalar_one_or_none()
        if album:
            return album

        album = Album(
            name=DEFAULT_ALBUM_NAME,
            description=DEFAULT_ALBUM_DESCRIPTION,
            photo_count=0,
            is_private=True,
        )
        db.add(album)
        await db.flush()
        logger.info(f"已创建默认相册: {DEFAULT_ALBUM_NAME} (ID: {album.id})")
        return album

    @staticmethod
    async def get_album(db: AsyncSession, album_id: int) -> Optional[Album]:
        """获取相册"""
        return await db.get(Album, album_id)

    @staticmethod
    async def require_album(db: AsyncSession, album_id: int) -> Album:
        """获取相册，不存在时抛出 NotFoundException"""
        album = await db.get(Album, album_id)
        if not album:
            raise NotFoundException("相册", album_id)
        return album

    @staticmethod
    async def resolve_target(db: AsyncSession, album_id: Optional[int]) -> Album:
        """解析目标相册，None 归一化为默认相册"""
        if album_id is None:
            return await AlbumService.ensure_default_album(db)
        return await AlbumService.require_album(db, album_id)

    @staticmethod
    async def adjust_photo_count(db: AsyncSession, album_id: Optional[int], delta: int) -> None:
        """在当前事务内增减相册照片计数"""
        if album_id is None or delta == 0:
            return
        await db.execute(
            update(Album)
            .where(Album.id == album_id)
            .values(photo_count=Album.photo_count + delta)
        )

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationException("相册名称不能为空")
        return name

    @staticmethod
    async def create_album(db: AsyncSession, data: AlbumCreate) -> Album:
        """创建相册"""
        name = AlbumService._clean_name(data.name)
        if name == DEFAULT_ALBUM_NAME:
            raise ValidationException(f"相册名称 {DEFAULT_ALBUM_NAME} 为系统保留")

        album = Album(
            name=name,
            description=data.description,
            is_private=data.is_private,
            photo_count=0,
        )
        db.add(album)
        await db.flush()
        await db.refresh(album)
        logger.info(f"创建相册: {album.name} (ID: {album.id})")
        return album

    @staticmethod
    async def update_album(db: AsyncSession, album_id: int, data: AlbumUpdate) -> Album:
        """
        更新相册

        只处理显式提交的字段；提交 cover_photo_id 时走 set_cover 校验
        """
        album = await AlbumService.require_album(db, album_id)
        patch = data.model_dump(exclude_unset=True)

        if "name" in patch:
            name = AlbumService._clean_name(patch["name"])
            if name != album.name:
                if album.is_default:
                    raise ForbiddenException("默认相册不能重命名")
                if name == DEFAULT_ALBUM_NAME:
                    raise ValidationException(f"相册名称 {DEFAULT_ALBUM_NAME} 为系统保留")
                album.name = name

        if "description" in patch:
            album.description = patch["description"]
        if patch.get("is_private") is not None:
            album.is_private = patch["is_private"]

        if "cover_photo_id" in patch:
            await AlbumService.set_cover(db, album_id, patch["cover_photo_id"])

        await db.flush()
        await db.refresh(album)
        return album

    @staticmethod
    async def set_cover(db: AsyncSession, album_id: int, photo_id: Optional[int]) -> Album:
        """设置或清除相册封面，封面照片必须属于该相册"""
        album = await AlbumService.require_album(db, album_id)

        if photo_id is not None:
            photo = await db.get(Photo, photo_id)
            if not photo or photo.album_id != album.id:
                raise ValidationException("封面照片不属于该相册")

        album.cover_photo_id = photo_id
        await db.flush()
        return album

    @staticmethod
    async def delete_album(db: AsyncSession, album_id: int) -> int:
        """
        删除相册

        成员照片批量转入默认相册后再删除相册行，两步在同一事务内，
        照片本身不会被删除

        Returns:
            转移的照片数量
        """
        album = await AlbumService.require_album(db, album_id)
        if album.is_default:
            raise ForbiddenException("默认相册不能删除")

        default = await AlbumService.ensure_default_album(db)

        result = await db.execute(
            update(Photo)
            .where(Photo.album_id == album.id)
            .values(album_id=default.id)
        )
        moved = result.rowcount or 0
        await AlbumService.adjust_photo_count(db, default.id, moved)

        await db.delete(album)
        await db.flush()
        logger.info(f"删除相册: {album.name} (ID: {album_id})，{moved} 张照片转入 {DEFAULT_ALBUM_NAME}")
        return moved


class PhotoService:
    """
    照片服务类
    照片查询、收藏切换、相册归属和信息编辑
    """

    @staticmethod
    async def get_photo(db: AsyncSession, photo_id: int) -> Optional[Photo]:
        """获取照片"""
        return await db.get(Photo, photo_id)

    @staticmethod
    async def require_photo(db: AsyncSession, photo_id: int) -> Photo:
        photo = await db.get(Photo, photo_id)
        if not photo:
            raise NotFoundException("照片", photo_id)
        return photo

    @staticmethod
    async def list_by_ids(db: AsyncSession, photo_ids: List[int]) -> List[Photo]:
        """按ID批量获取，不存在的ID直接忽略"""
        if not photo_ids:
            return []
        result = await db.execute(select(Photo).where(Photo.id.in_(set(photo_ids))).order_by(Photo.id))
        return list(result.scalars().all())

    @staticmethod
    async def toggle_favorite(db: AsyncSession, photo_id: int) -> Photo:
        """
        切换收藏状态

        单条 UPDATE ... SET is_favorite = NOT is_favorite，读写在数据库内原子完成
        """
        result = await db.execute(
            update(Photo)
            .where(Photo.id == photo_id)
            .values(is_favorite=not_(Photo.is_favorite))
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise NotFoundException("照片", photo_id)

        photo = await db.get(Photo, photo_id, populate_existing=True)
        return photo

    @staticmethod
    async def reassign_album(db: AsyncSession, photo_id: int, album_id: Optional[int]) -> Photo:
        """移动照片到其他相册，None 表示默认相册"""
        photo = await PhotoService.require_photo(db, photo_id)
        target = await AlbumService.resolve_target(db, album_id)

        if photo.album_id == target.id:
            return photo

        old_album_id = photo.album_id
        photo.album_id = target.id
        await db.flush()

        await AlbumService.adjust_photo_count(db, old_album_id, -1)
        await AlbumService.adjust_photo_count(db, target.id, 1)

        # 原相册以此照片为封面时一并清除
        if old_album_id is not None:
            await db.execute(
                update(Album)
                .where(Album.id == old_album_id, Album.cover_photo_id == photo.id)
                .values(cover_photo_id=None)
            )
        return photo

    @staticmethod
    async def update_photo(db: AsyncSession, photo_id: int, data: PhotoUpdate) -> Photo:
        """更新照片信息（只处理显式提交的字段）"""
        photo = await PhotoService.require_photo(db, photo_id)
        patch = data.model_dump(exclude_unset=True)

        if "title" in patch:
            photo.title = patch["title"]
        if "description" in patch:
            photo.description = patch["description"]
        if "tags" in patch:
            photo.tags = encode_tags(patch["tags"])
        if patch.get("is_favorite") is not None:
            photo.is_favorite = patch["is_favorite"]
        await db.flush()

        if "album_id" in patch:
            await PhotoService.reassign_album(db, photo_id, patch["album_id"])

        await db.refresh(photo)
        return photo

    @staticmethod
    async def count_in_album(db: AsyncSession, album_id: int) -> int:
        """统计相册内实际照片数（用于核对 photo_count）"""
        result = await db.execute(select(func.count(Photo.id)).where(Photo.album_id == album_id))
        return result.scalar() or 0

