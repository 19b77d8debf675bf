"""
数据验证模式目录
模块专属的请求/响应模式放在各模块的 {module_id}_schemas.py 中
"""

from .response import success

__all__ = ["success"]
