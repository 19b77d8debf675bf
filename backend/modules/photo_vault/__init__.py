"""
照片库模块
"""

from .photo_vault_manifest import manifest
from .photo_vault_models import Album, Photo
from .photo_vault_services import AlbumService, PhotoService

__all__ = ["manifest", "Album", "Photo", "AlbumService", "PhotoService"]
