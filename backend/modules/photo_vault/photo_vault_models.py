"""
照片库模块数据模型
定义数据库表结构

照片文件本体存放在对象存储中，这里只保存元数据
"""

from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, DateTime, ForeignKey, Index

from core.database import Base
from utils.timezone import utc_now

# 默认相册名称（系统保留，不可删除）
DEFAULT_ALBUM_NAME = "Uncategorized"
DEFAULT_ALBUM_DESCRIPTION = "Photos without a specific album"


class Album(Base):
    """
    相册数据表

    cover_photo_id 是指向照片的弱引用：照片删除时由删除流程显式置空，
    不会级联删除相册
    """
    __tablename__ = "photo_vault_albums"
    __table_args__ = {'extend_existing': True, 'comment': '照片库相册表'}

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")

    name = Column(String(255), nullable=False, index=True, comment="相册名称")
    description = Column(Text, nullable=True, comment="相册描述")
    cover_photo_id = Column(Integer, nullable=True, index=True, comment="封面照片ID")

    # 统计字段（与成员变更在同一事务内维护）
    photo_count = Column(Integer, nullable=False, default=0, comment="照片数量")

    is_private = Column(Boolean, nullable=False, default=True, comment="是否私密")

    created_at = Column(DateTime(timezone=True), default=utc_now, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, comment="更新时间")

    @property
    def is_default(self) -> bool:
        return self.name == DEFAULT_ALBUM_NAME

    def __repr__(self):
        return f"<Album(id={self.id}, name={self.name})>"


class Photo(Base):
    """
    照片数据表
    """
    __tablename__ = "photo_vault_photos"
    __table_args__ = (
        Index("idx_photo_vault_photos_upload_date", "upload_date"),
        {'extend_existing': True, 'comment': '照片库照片表'},
    )

    id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    album_id = Column(
        Integer,
        ForeignKey("photo_vault_albums.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="所属相册ID"
    )

    # 对象存储信息
    blob_id = Column(String(500), nullable=False, unique=True, comment="对象存储ID")
    url = Column(String(1000), nullable=False, comment="访问URL")
    thumbnail_url = Column(String(1000), nullable=True, comment="缩略图URL")

    # 图片元信息
    title = Column(String(255), nullable=True, comment="照片标题")
    description = Column(Text, nullable=True, comment="照片描述")
    width = Column(Integer, nullable=True, comment="图片宽度")
    height = Column(Integer, nullable=True, comment="图片高度")
    file_size = Column(BigInteger, nullable=True, comment="文件大小(字节)")
    format = Column(String(50), nullable=True, comment="图片格式")
    tags = Column(String(500), nullable=True, index=True, comment="标签(逗号分隔，小写)")

    is_favorite = Column(Boolean, nullable=False, default=False, index=True, comment="是否收藏")

    taken_at = Column(DateTime(timezone=True), nullable=True, comment="拍摄时间")
    upload_date = Column(DateTime(timezone=True), nullable=False, default=utc_now, comment="上传时间")
    created_at = Column(DateTime(timezone=True), default=utc_now, comment="创建时间")

    def __repr__(self):
        return f"<Photo(id={self.id}, blob_id={self.blob_id})>"
