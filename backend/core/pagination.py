"""
统一分页工具
提供基于偏移量的分页查询功能

has_more 通过多取一条记录判断，不依赖总数；total 仅供展示，
并发写入时两者可能不一致
"""

from typing import List, Optional, Any, Callable
from pydantic import BaseModel, ConfigDict, Field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


class WindowPage(BaseModel):
    """分页窗口结果"""
    items: List[Any] = Field(description="数据列表")
    page: int = Field(description="当前页码")
    page_size: int = Field(description="每页数量")
    has_more: bool = Field(description="是否还有下一页")
    total: Optional[int] = Field(default=None, description="总记录数（仅供参考）")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_dict(self) -> dict:
        """转换为字典（用于API响应）"""
        return {
            "items": self.items,
            "pagination": {
                "page": self.page,
                "page_size": self.page_size,
                "has_more": self.has_more,
                "total": self.total
            }
        }


def normalize_page(page: int, page_size: int, max_page_size: int = 100) -> tuple[int, int]:
    """规范化分页参数（越界值收敛到合法范围）"""
    return max(1, page), max(1, min(page_size, max_page_size))


async def paginate_window(
    db: AsyncSession,
    query,
    page: int = 1,
    page_size: int = 20,
    transformer: Optional[Callable] = None,
    with_total: bool = False
) -> WindowPage:
    """
    通用分页查询（多取一条判断是否有下一页）

    Args:
        db: 数据库会话
        query: 已排序的 SQLAlchemy 查询对象，排序必须是全序的
        page: 页码（从1开始）
        page_size: 每页数量
        transformer: 可选的数据转换函数，用于将行转换为字典或其他格式
        with_total: 是否额外执行一次计数查询

    Usage:
        query = select(Photo).order_by(Photo.upload_date.desc(), Photo.id.desc())
        result = await paginate_window(db, query, page=2, page_size=36)
    """
    offset = (page - 1) * page_size

    result = await db.execute(query.offset(offset).limit(page_size + 1))
    rows = list(result.all())

    has_more = len(rows) > page_size
    rows = rows[:page_size]

    items = [transformer(row) for row in rows] if transformer else rows

    total = None
    if with_total:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await db.execute(count_query)).scalar() or 0

    return WindowPage(
        items=items,
        page=page,
        page_size=page_size,
        has_more=has_more,
        total=total
    )
