"""
照片库模块数据验证
定义请求/响应的数据结构
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


def encode_tags(tags: Optional[List[str]]) -> Optional[str]:
    """标签列表转存储格式：去空白、转小写、去重（保持顺序）、逗号拼接"""
    if not tags:
        return None
    seen = []
    for tag in tags:
        tag = (tag or "").replace(",", " ").strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return ",".join(seen) or None


def decode_tags(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [t for t in value.split(",") if t]


# ==================== 相册模型 ====================

class AlbumCreate(BaseModel):
    """创建相册请求（名称非空由服务层校验）"""
    name: str = Field(..., max_length=255, description="相册名称")
    description: Optional[str] = Field(None, description="相册描述")
    is_private: bool = Field(True, description="是否私密")


class AlbumUpdate(BaseModel):
    """
    更新相册请求

    只更新显式提交的字段；cover_photo_id 显式传 null 表示清除封面
    """
    name: Optional[str] = Field(None, max_length=255, description="相册名称")
    description: Optional[str] = Field(None, description="相册描述")
    is_private: Optional[bool] = Field(None, description="是否私密")
    cover_photo_id: Optional[int] = Field(None, description="封面照片ID")


class AlbumResponse(BaseModel):
    """相册响应模型"""
    id: int = Field(..., description="相册ID")
    name: str = Field(..., description="相册名称")
    description: Optional[str] = Field(None, description="相册描述")
    cover_photo_id: Optional[int] = Field(None, description="封面照片ID")
    cover_url: Optional[str] = Field(None, description="封面图片URL")
    cover_thumbnail: Optional[str] = Field(None, description="封面缩略图URL")
    photo_count: int = Field(0, description="照片数量")
    is_private: bool = Field(True, description="是否私密")
    is_default: bool = Field(False, description="是否默认相册")
    created_at: Optional[datetime] = Field(None, description="创建时间")
    updated_at: Optional[datetime] = Field(None, description="更新时间")

    model_config = ConfigDict(from_attributes=True)


# ==================== 照片模型 ====================

class PhotoUpdate(BaseModel):
    """更新照片请求（只更新显式提交的字段）"""
    title: Optional[str] = Field(None, max_length=255, description="照片标题")
    description: Optional[str] = Field(None, description="照片描述")
    tags: Optional[List[str]] = Field(None, description="标签")
    is_favorite: Optional[bool] = Field(None, description="是否收藏")
    album_id: Optional[int] = Field(None, description="目标相册ID，null 表示默认相册")


class PhotoResponse(BaseModel):
    """照片响应模型"""
    id: int = Field(..., description="照片ID")
    album_id: Optional[int] = Field(None, description="所属相册ID")
    album_name: Optional[str] = Field(None, description="所属相册名称")
    blob_id: str = Field(..., description="对象存储ID")
    url: str = Field(..., description="照片URL")
    thumbnail_url: Optional[str] = Field(None, description="缩略图URL")
    title: Optional[str] = Field(None, description="照片标题")
    description: Optional[str] = Field(None, description="照片描述")
    width: Optional[int] = Field(None, description="图片宽度")
    height: Optional[int] = Field(None, description="图片高度")
    file_size: Optional[int] = Field(None, description="文件大小")
    format: Optional[str] = Field(None, description="图片格式")
    tags: List[str] = Field(default_factory=list, description="标签")
    is_favorite: bool = Field(False, description="是否收藏")
    taken_at: Optional[datetime] = Field(None, description="拍摄时间")
    upload_date: Optional[datetime] = Field(None, description="上传时间")
    created_at: Optional[datetime] = Field(None, description="创建时间")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        if v is None or isinstance(v, str):
            return decode_tags(v)
        return v


class BlobDescriptor(BaseModel):
    """已写入对象存储的文件描述（用于重新登记元数据）"""
    blob_id: str = Field(..., description="对象存储ID")
    url: str = Field(..., description="访问URL")
    thumbnail_url: Optional[str] = Field(None, description="缩略图URL")
    width: Optional[int] = Field(None, description="图片宽度")
    height: Optional[int] = Field(None, description="图片高度")
    size_bytes: int = Field(0, ge=0, description="文件大小")
    format: Optional[str] = Field(None, description="图片格式")
    title: Optional[str] = Field(None, max_length=255, description="照片标题")


class PhotoRegisterRequest(BaseModel):
    """重新登记元数据请求"""
    blobs: List[BlobDescriptor] = Field(default_factory=list, description="文件描述列表")
    album_id: Optional[int] = Field(None, description="目标相册ID")


class BulkDeleteRequest(BaseModel):
    """批量删除请求"""
    ids: List[int] = Field(default_factory=list, description="照片ID列表")


class StatsResponse(BaseModel):
    """统计响应模型"""
    total_photos: int = Field(0, description="照片总数")
    total_albums: int = Field(0, description="相册总数")
    favorites: int = Field(0, description="收藏数")
    total_storage_bytes: int = Field(0, description="存储占用(字节)")
    total_storage_mb: float = Field(0, description="存储占用(MB)")
