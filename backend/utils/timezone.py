# -*- coding: utf-8 -*-
"""
时区工具模块
数据库统一存储 UTC 时间
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        datetime: 带有 UTC 时区信息的当前时间
    """
    return datetime.now(timezone.utc)
