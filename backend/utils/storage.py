"""
文件存储工具
处理本地文件落盘、路径安全校验与删除
"""

import uuid
from pathlib import Path
from typing import Optional, Tuple
import logging

from core.config import get_settings

logger = logging.getLogger(__name__)


class StorageManager:
    """文件存储管理器"""

    def __init__(self, upload_dir: Optional[str] = None):
        # 使用绝对路径，避免工作目录差异导致多处生成 storage
        self.upload_dir = Path(upload_dir or get_settings().upload_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def generate_path(self, folder: str, ext: str = "") -> Tuple[str, Path]:
        """
        生成唯一文件路径

        Args:
            folder: 相对目录（如 portfolio/photos/Trip）
            ext: 扩展名（不含点）

        Returns:
            (相对路径, 完整路径)
        """
        file_id = uuid.uuid4().hex
        filename = f"{file_id}.{ext}" if ext else file_id
        folder = folder.strip("/")
        relative_path = f"{folder}/{filename}" if folder else filename
        return relative_path, self.upload_dir / relative_path

    def _is_safe_path(self, path: Path) -> bool:
        """检查路径是否位于 upload_dir 内（防止路径遍历攻击）"""
        try:
            return path.resolve().is_relative_to(self.upload_dir)
        except (OSError, ValueError):
            return False

    def _resolve(self, relative_path: str) -> Optional[Path]:
        """相对路径转完整路径，不安全返回 None"""
        if '..' in relative_path or relative_path.startswith('/'):
            logger.warning(f"检测到可疑路径: {relative_path}")
            return None

        full_path = self.upload_dir / relative_path
        if not self._is_safe_path(full_path):
            logger.warning(f"路径遍历尝试被阻止: {relative_path}")
            return None
        return full_path

    def write_file(self, relative_path: str, content: bytes) -> Path:
        """写入文件（自动创建目录）"""
        full_path = self._resolve(relative_path)
        if full_path is None:
            raise ValueError(f"非法存储路径: {relative_path}")
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)
        return full_path

    def get_file_path(self, relative_path: str) -> Optional[Path]:
        """
        获取文件完整路径

        Returns:
            完整路径，如果不存在或路径不安全返回 None
        """
        full_path = self._resolve(relative_path)
        if full_path is not None and full_path.is_file():
            return full_path
        return None

    def delete_file(self, relative_path: str) -> bool:
        """
        删除文件，并清理空目录

        Returns:
            文件存在并已删除返回 True，不存在返回 False

        Raises:
            OSError: 文件系统错误
        """
        full_path = self._resolve(relative_path)
        if full_path is None or not full_path.exists():
            return False

        full_path.unlink()
        parent = full_path.parent
        if parent != self.upload_dir and not any(parent.iterdir()):
            parent.rmdir()
        return True


# 全局存储管理器实例
_storage_manager: Optional[StorageManager] = None


def get_storage_manager() -> StorageManager:
    """获取存储管理器实例"""
    global _storage_manager
    if _storage_manager is None:
        _storage_manager = StorageManager()
    return _storage_manager
