"""创建照片库相册表和照片表

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-10-17 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f2a9c1d7e40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # 相册表
    op.create_table(
        'photo_vault_albums',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('name', sa.String(255), nullable=False, comment='相册名称'),
        sa.Column('description', sa.Text(), nullable=True, comment='相册描述'),
        sa.Column('cover_photo_id', sa.Integer(), nullable=True, comment='封面照片ID'),
        sa.Column('photo_count', sa.Integer(), nullable=False, default=0, comment='照片数量'),
        sa.Column('is_private', sa.Boolean(), nullable=False, default=True, comment='是否私密'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='照片库相册表'
    )
    op.create_index('ix_photo_vault_albums_name', 'photo_vault_albums', ['name'])
    op.create_index('ix_photo_vault_albums_cover_photo_id', 'photo_vault_albums', ['cover_photo_id'])

    # 照片表
    op.create_table(
        'photo_vault_photos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('album_id', sa.Integer(), nullable=True, comment='所属相册ID'),
        sa.Column('blob_id', sa.String(500), nullable=False, comment='对象存储ID'),
        sa.Column('url', sa.String(1000), nullable=False, comment='访问URL'),
        sa.Column('thumbnail_url', sa.String(1000), nullable=True, comment='缩略图URL'),
        sa.Column('title', sa.String(255), nullable=True, comment='照片标题'),
        sa.Column('description', sa.Text(), nullable=True, comment='照片描述'),
        sa.Column('width', sa.Integer(), nullable=True, comment='图片宽度'),
        sa.Column('height', sa.Integer(), nullable=True, comment='图片高度'),
        sa.Column('file_size', sa.BigInteger(), nullable=True, comment='文件大小(字节)'),
        sa.Column('format', sa.String(50), nullable=True, comment='图片格式'),
        sa.Column('tags', sa.String(500), nullable=True, comment='标签(逗号分隔，小写)'),
        sa.Column('is_favorite', sa.Boolean(), nullable=False, default=False, comment='是否收藏'),
        sa.Column('taken_at', sa.DateTime(timezone=True), nullable=True, comment='拍摄时间'),
        sa.Column('upload_date', sa.DateTime(timezone=True), nullable=False, comment='上传时间'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True, comment='创建时间'),
        sa.ForeignKeyConstraint(['album_id'], ['photo_vault_albums.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('blob_id'),
        comment='照片库照片表'
    )
    op.create_index('ix_photo_vault_photos_album_id', 'photo_vault_photos', ['album_id'])
    op.create_index('ix_photo_vault_photos_tags', 'photo_vault_photos', ['tags'])
    op.create_index('ix_photo_vault_photos_is_favorite', 'photo_vault_photos', ['is_favorite'])
    op.create_index('idx_photo_vault_photos_upload_date', 'photo_vault_photos', ['upload_date'])


def downgrade() -> None:
    op.drop_index('idx_photo_vault_photos_upload_date', 'photo_vault_photos')
    op.drop_index('ix_photo_vault_photos_is_favorite', 'photo_vault_photos')
    op.drop_index('ix_photo_vault_photos_tags', 'photo_vault_photos')
    op.drop_index('ix_photo_vault_photos_album_id', 'photo_vault_photos')
    op.drop_table('photo_vault_photos')

    op.drop_index('ix_photo_vault_albums_cover_photo_id', 'photo_vault_albums')
    op.drop_index('ix_photo_vault_albums_name', 'photo_vault_albums')
    op.drop_table('photo_vault_albums')
