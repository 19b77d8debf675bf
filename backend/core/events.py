"""
事件总线系统
实现模块间的松耦合通信
"""

from typing import Callable, Dict, List, Any
from dataclasses import dataclass, field
import asyncio
import logging

from utils.timezone import utc_now

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """事件数据结构"""
    name: str
    source: str  # 发送模块ID
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: Any = field(default_factory=utc_now)


# 事件处理器类型
EventHandler = Callable[[Event], Any]


class EventBus:
    """事件总线 - 模块间通信桥梁"""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._history: List[Event] = []
        self._max_history = 1000

    def subscribe(self, event_name: str, handler: EventHandler):
        """订阅事件"""
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"订阅事件: {event_name}")

    def unsubscribe(self, event_name: str, handler: EventHandler):
        """取消订阅"""
        if handler in self._handlers.get(event_name, []):
            self._handlers[event_name].remove(handler)
            logger.debug(f"取消订阅: {event_name}")

    async def publish(self, event: Event):
        """
        发布事件

        订阅者的异常只记录日志，不影响发布方的业务流程
        """
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        logger.debug(f"发布事件: {event.name} 来自 {event.source}")

        for handler in list(self._handlers.get(event.name, [])):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as e:
                logger.error(f"事件处理错误 {event.name}: {e}")

    def get_history(self, event_name: str = None, limit: int = 100) -> List[Event]:
        """获取事件历史"""
        if event_name:
            filtered = [e for e in self._history if e.name == event_name]
        else:
            filtered = self._history
        return filtered[-limit:]

    def clear(self):
        """清空订阅与历史（测试用）"""
        self._handlers.clear()
        self._history.clear()


# 全局事件总线实例
event_bus = EventBus()


# 预定义事件名称常量
class Events:
    """系统事件名称"""
    # 系统事件
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"

    # 模块事件
    MODULE_LOADED = "module.loaded"

    # 照片库事件
    PHOTOS_UPLOADED = "photo_vault.photos_uploaded"
    PHOTOS_DELETED = "photo_vault.photos_deleted"
    BLOBS_ORPHANED = "photo_vault.blobs_orphaned"
