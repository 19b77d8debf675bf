"""
健康检查路由
提供数据库与文件存储的健康状态
"""

import time
import logging
from typing import Optional

import psutil
from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from core.config import get_settings
from core.database import engine
from utils.storage import get_storage_manager
from utils.timezone import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(tags=["健康检查"])


class ComponentHealth(BaseModel):
    """组件健康状态"""
    status: str  # healthy, degraded, unhealthy
    message: Optional[str] = None
    latency_ms: Optional[float] = None


class HealthStatus(BaseModel):
    """健康状态响应"""
    status: str
    version: str
    timestamp: str
    uptime_seconds: float
    components: dict


# 系统启动时间
_start_time = utc_now()


async def check_database() -> ComponentHealth:
    """检查数据库连接"""
    start = time.time()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"数据库健康检查失败: {e}")
        return ComponentHealth(status="unhealthy", message=f"数据库连接失败: {e}")

    latency = (time.time() - start) * 1000
    return ComponentHealth(status="healthy", message="数据库连接正常", latency_ms=round(latency, 2))


def check_storage() -> ComponentHealth:
    """检查文件存储所在磁盘的剩余空间"""
    try:
        disk = psutil.disk_usage(str(get_storage_manager().upload_dir))
    except OSError as e:
        return ComponentHealth(status="degraded", message=f"无法检查磁盘空间: {e}")

    used_percent = disk.percent
    free_gb = disk.free / (1024 ** 3)
    if used_percent > 95:
        return ComponentHealth(
            status="unhealthy",
            message=f"磁盘空间严重不足: {used_percent}% 已使用，剩余 {free_gb:.1f}GB"
        )
    if used_percent > 85:
        return ComponentHealth(
            status="degraded",
            message=f"磁盘空间不足: {used_percent}% 已使用，剩余 {free_gb:.1f}GB"
        )
    return ComponentHealth(
        status="healthy",
        message=f"磁盘空间正常: {used_percent}% 已使用，剩余 {free_gb:.1f}GB"
    )


@router.get("/health", response_model=HealthStatus)
async def health_check():
    """
    健康检查端点

    数据库不可用时整体为 unhealthy，其余组件异常时为 degraded
    """
    db_health = await check_database()
    storage_health = check_storage()

    if db_health.status == "unhealthy":
        overall_status = "unhealthy"
    elif storage_health.status != "healthy":
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    now = utc_now()
    return HealthStatus(
        status=overall_status,
        version=get_settings().app_version,
        timestamp=now.isoformat(),
        uptime_seconds=round((now - _start_time).total_seconds(), 2),
        components={
            "database": db_health.model_dump(),
            "storage": storage_health.model_dump(),
        }
    )


@router.get("/health/live")
async def liveness_probe():
    """存活探针，只检查应用是否在运行"""
    return {"status": "alive"}
