"""
工具函数目录
按功能分类组织
"""

from .storage import StorageManager, get_storage_manager
from .timezone import utc_now

__all__ = [
    # 文件存储
    "StorageManager",
    "get_storage_manager",
    # 时间
    "utc_now",
]
