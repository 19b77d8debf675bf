"""
照片库模块路由
定义 API 接口（全部需要管理员权限）
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.database import get_db
from core.errors import ValidationException
from core.security import require_admin, TokenData
from schemas.response import success

from .photo_vault_blob import BlobStore, BlobUpload, get_blob_store
from .photo_vault_coordinators import UploadCoordinator, DeletionCoordinator, UploadItem
from .photo_vault_queries import QueryEngine, StatsAggregator, PhotoQuery, ALL_ALBUMS
from .photo_vault_schemas import (
    AlbumCreate, AlbumUpdate, PhotoUpdate, PhotoRegisterRequest, BulkDeleteRequest, StatsResponse,
)
from .photo_vault_services import AlbumService, PhotoService, album_to_dict, photo_to_dict

router = APIRouter()
settings = get_settings()
admin_required = require_admin()


def _parse_album_filter(album_id: str):
    if album_id == ALL_ALBUMS:
        return ALL_ALBUMS
    try:
        return int(album_id)
    except ValueError:
        raise ValidationException("album_id 必须为 all 或相册ID")


# ==================== 相册接口 ====================

@router.get("/albums", summary="获取相册列表")
async def list_albums(
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    """全部相册，附带照片数量和封面"""
    albums = await QueryEngine.list_albums(db)
    return success(data=albums)


@router.post("/albums", summary="创建相册")
async def create_album(
    data: AlbumCreate,
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    album = await AlbumService.create_album(db, data)
    await db.commit()
    return success(data=album_to_dict(album), message="相册已创建")


@router.put("/albums/{album_id}", summary="更新相册")
async def update_album(
    album_id: int,
    data: AlbumUpdate,
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    """更新名称、描述、私密状态或封面（cover_photo_id 传 null 清除封面）"""
    album = await AlbumService.update_album(db, album_id, data)
    await db.commit()
    return success(data=album_to_dict(album), message="相册已更新")


@router.delete("/albums/{album_id}", summary="删除相册")
async def delete_album(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    """删除相册，相册内照片转入默认相册"""
    moved = await AlbumService.delete_album(db, album_id)
    await db.commit()
    return success(data={"id": album_id, "moved_photos": moved}, message="相册已删除")


# ==================== 照片接口 ====================

@router.get("/photos", summary="获取照片列表")
async def list_photos(
    album_id: str = Query(ALL_ALBUMS, description="相册ID，all 表示全部"),
    favorites_only: bool = Query(False, description="只看收藏"),
    search: str = Query("", description="搜索标题、描述和标签"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(settings.photo_default_page_size, ge=1, description="每页数量"),
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    query = PhotoQuery(
        album_id=_parse_album_filter(album_id),
        favorites_only=favorites_only,
        search=search,
        page=page,
        page_size=page_size,
    )
    result = await QueryEngine.list_photos(db, query, max_page_size=settings.photo_max_page_size)
    return success(data=result.to_dict())


@router.post("/photos/upload", summary="批量上传照片")
async def upload_photos(
    files: List[UploadFile] = File(..., description="照片文件"),
    album_id: Optional[int] = Form(None, description="目标相册ID，不传则放入默认相册"),
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    admin: TokenData = Depends(admin_required)
):
    """
    批量上传

    单个文件失败不影响其余文件，结果中分别列出成功和失败项
    """
    items = []
    for f in files:
        items.append(UploadItem(
            filename=f.filename or "unnamed",
            content=await f.read(),
            content_type=f.content_type,
        ))

    result = await UploadCoordinator(db, blob_store).upload(items, album_id)
    album = await AlbumService.get_album(db, result.album_id)
    album_name = album.name if album else None
    return success(
        data={
            "album_id": result.album_id,
            "uploaded": [photo_to_dict(p, album_name) for p in result.succeeded],
            "failed": [{"filename": f.filename, "reason": f.reason} for f in result.failed],
            "success_count": len(result.succeeded),
            "fail_count": len(result.failed),
        },
        message=f"成功上传 {len(result.succeeded)} 张，失败 {len(result.failed)} 张"
    )


@router.post("/photos/register", summary="登记已上传文件")
async def register_photos(
    data: PhotoRegisterRequest,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    admin: TokenData = Depends(admin_required)
):
    """为已在对象存储中的文件补写元数据"""
    blobs = [
        BlobUpload(
            blob_id=b.blob_id,
            url=b.url,
            thumbnail_url=b.thumbnail_url,
            width=b.width,
            height=b.height,
            size_bytes=b.size_bytes,
            format=b.format,
        )
        for b in data.blobs
    ]
    titles = [b.title for b in data.blobs]
    photos = await UploadCoordinator(db, blob_store).register(blobs, data.album_id, titles)
    return success(data=[photo_to_dict(p) for p in photos], message=f"已登记 {len(photos)} 张照片")


@router.put("/photos/{photo_id}", summary="更新照片")
async def update_photo(
    photo_id: int,
    data: PhotoUpdate,
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    photo = await PhotoService.update_photo(db, photo_id, data)
    await db.commit()
    return success(data=photo_to_dict(photo), message="照片已更新")


@router.put("/photos/{photo_id}/favorite", summary="切换收藏")
async def toggle_favorite(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    photo = await PhotoService.toggle_favorite(db, photo_id)
    await db.commit()
    return success(data={"id": photo.id, "is_favorite": photo.is_favorite})


@router.delete("/photos/{photo_id}", summary="删除照片")
async def delete_photo(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    admin: TokenData = Depends(admin_required)
):
    result = await DeletionCoordinator(db, blob_store).delete_one(photo_id)
    return success(
        data={"id": result.photo_id, "blob_deleted": result.blob_deleted},
        message="照片已删除"
    )


@router.post("/photos/bulk-delete", summary="批量删除照片")
async def bulk_delete_photos(
    data: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    admin: TokenData = Depends(admin_required)
):
    result = await DeletionCoordinator(db, blob_store).delete_many(data.ids)
    return success(
        data={
            "deleted_count": result.deleted_count,
            "blob_failures": [{"blob_id": f.blob_id, "reason": f.reason} for f in result.blob_failures],
            "not_found_ids": result.not_found_ids,
        },
        message=f"已删除 {result.deleted_count} 张照片"
    )


# ==================== 统计接口 ====================

@router.get("/stats", summary="照片库统计")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: TokenData = Depends(admin_required)
):
    stats = await StatsAggregator.compute_stats(db)
    return success(data=StatsResponse(**stats).model_dump())
