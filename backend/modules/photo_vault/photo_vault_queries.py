"""
照片库查询
照片分页列表、相册列表和统计，只读元数据库
"""

import logging
from dataclasses import dataclass
from typing import Union, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from core.pagination import WindowPage, normalize_page, paginate_window
from .photo_vault_models import Album, Photo, DEFAULT_ALBUM_NAME
from .photo_vault_services import album_to_dict, photo_to_dict

logger = logging.getLogger(__name__)

ALL_ALBUMS = "all"


@dataclass
class PhotoQuery:
    """照片列表查询条件（各条件之间为 AND）"""
    album_id: Union[str, int] = ALL_ALBUMS
    favorites_only: bool = False
    search: str = ""
    page: int = 1
    page_size: int = 36


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class QueryEngine:
    """照片与相册列表查询"""

    @staticmethod
    async def list_photos(db: AsyncSession, query: PhotoQuery, max_page_size: int = 100) -> WindowPage:
        """
        照片分页列表

        按上传时间倒序，ID 倒序兜底保证顺序稳定；
        album_id 为默认相册时同时包含未归属的照片
        """
        page, page_size = normalize_page(query.page, query.page_size, max_page_size)

        stmt = select(Photo, Album.name).outerjoin(Album, Photo.album_id == Album.id)

        if query.album_id != ALL_ALBUMS:
            album_id = int(query.album_id)
            album = await db.get(Album, album_id)
            if album is not None and album.name == DEFAULT_ALBUM_NAME:
                stmt = stmt.where(or_(Photo.album_id == album_id, Photo.album_id.is_(None)))
            else:
                stmt = stmt.where(Photo.album_id == album_id)

        if query.favorites_only:
            stmt = stmt.where(Photo.is_favorite.is_(True))

        term = (query.search or "").strip()
        if term:
            pattern = _like_pattern(term)
            conditions = [
                Photo.title.ilike(pattern, escape="\\"),
                Photo.description.ilike(pattern, escape="\\"),
            ]
            # 标签本身不含逗号，含逗号的搜索词只会跨标签命中
            if "," not in term:
                conditions.append(Photo.tags.ilike(pattern, escape="\\"))
            stmt = stmt.where(or_(*conditions))

        stmt = stmt.order_by(Photo.upload_date.desc(), Photo.id.desc()).execution_options(
            populate_existing=True
        )

        return await paginate_window(
            db, stmt,
            page=page,
            page_size=page_size,
            transformer=lambda row: photo_to_dict(row[0], row[1]),
            with_total=True
        )

    @staticmethod
    async def list_albums(db: AsyncSession) -> list:
        """全部相册（新建在前），附带封面缩略图"""
        cover = aliased(Photo)
        result = await db.execute(
            select(Album, cover.thumbnail_url, cover.url)
            .outerjoin(cover, Album.cover_photo_id == cover.id)
            .order_by(Album.created_at.desc(), Album.id.desc())
            .execution_options(populate_existing=True)
        )
        return [
            album_to_dict(album, cover_thumbnail=thumb, cover_url=url)
            for album, thumb, url in result.all()
        ]


class StatsAggregator:
    """
    照片库统计

    四个数字来自相互独立的聚合查询，不加锁，并发写入时允许彼此略有出入
    """

    @staticmethod
    async def _scalar(db: AsyncSession, stmt) -> Optional[int]:
        return (await db.execute(stmt)).scalar()

    @staticmethod
    async def compute_stats(db: AsyncSession) -> dict:
        total_photos = await StatsAggregator._scalar(db, select(func.count(Photo.id))) or 0
        total_albums = await StatsAggregator._scalar(db, select(func.count(Album.id))) or 0
        favorites = await StatsAggregator._scalar(
            db, select(func.count(Photo.id)).where(Photo.is_favorite.is_(True))
        ) or 0
        total_bytes = await StatsAggregator._scalar(
            db, select(func.coalesce(func.sum(Photo.file_size), 0))
        ) or 0

        return {
            "total_photos": int(total_photos),
            "total_albums": int(total_albums),
            "favorites": int(favorites),
            "total_storage_bytes": int(total_bytes),
            "total_storage_mb": round(int(total_bytes) / (1024 * 1024), 2),
        }
