"""
照片库模块清单
定义模块元信息、路由入口、权限声明等
"""

import logging

from core.database import async_session
from core.loader import ModuleManifest

logger = logging.getLogger(__name__)


async def on_enable():
    """启动时确保默认相册存在"""
    from .photo_vault_services import AlbumService

    async with async_session() as db:
        await AlbumService.ensure_default_album(db)
        await db.commit()


manifest = ModuleManifest(
    id="photo_vault",
    name="照片库",
    version="1.0.0",
    description="作品集照片与相册管理，元数据与对象存储双写一致",
    author="Portfolio",

    router_prefix="/api/v1/photo-vault",

    permissions=[
        "photo_vault.read",
        "photo_vault.create",
        "photo_vault.update",
        "photo_vault.delete"
    ],

    dependencies=[],

    enabled=True,

    on_enable=on_enable,
)
