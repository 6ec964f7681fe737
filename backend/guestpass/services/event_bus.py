"""
领域事件总线

房态、凭证、入住、订单等服务在提交事务之后发布事件；
订阅方（通知、看板推送等）在同一线程内同步收到，异常只记日志。
服务均支持注入 event_publisher，测试时可替换为列表收集。
"""
from typing import Callable, Dict, List, Any, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
from enum import Enum
import logging
import threading
import uuid

from guestpass.config import settings

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]
Topic = Union[str, Enum]


def _topic(event_type: Topic) -> str:
    return event_type.value if isinstance(event_type, Enum) else event_type


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", repr(handler))


@dataclass
class Event:
    """已提交的领域事件"""
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str  # 发布方服务名，如 room_service
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    进程内事件总线（单例）

    >>> event_bus.subscribe(EventType.ROOM_STATUS_CHANGED, notify_housekeeping)
    >>> event_bus.publish(Event(...))

    最近的事件保留在环形缓冲区中，供排查问题时查看。
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._handlers: Dict[str, List[Handler]] = {}
        self._recent: deque = deque(maxlen=settings.EVENT_HISTORY_SIZE)
        self._handlers_lock = threading.Lock()
        self._initialized = True
        logger.info(f"EventBus initialized, keeping {settings.EVENT_HISTORY_SIZE} recent events")

    def subscribe(self, event_type: Topic, handler: Handler) -> None:
        """订阅事件类型，同一处理器重复订阅只保留一次"""
        topic = _topic(event_type)
        with self._handlers_lock:
            handlers = self._handlers.setdefault(topic, [])
            if handler in handlers:
                return
            handlers.append(handler)
        logger.info(f"Handler {_handler_name(handler)} subscribed to {topic}")

    def unsubscribe(self, event_type: Topic, handler: Handler) -> None:
        topic = _topic(event_type)
        with self._handlers_lock:
            handlers = self._handlers.get(topic, [])
            if handler not in handlers:
                return
            handlers.remove(handler)
        logger.info(f"Handler {_handler_name(handler)} unsubscribed from {topic}")

    def subscriber_count(self, event_type: Topic) -> int:
        with self._handlers_lock:
            return len(self._handlers.get(_topic(event_type), []))

    def publish(self, event: Event) -> None:
        """
        同步分发事件

        业务数据已在发布前提交；某个处理器失败不影响其余处理器，
        也不会把异常抛回发布方。
        """
        self._recent.append(event)
        topic = _topic(event.event_type)

        with self._handlers_lock:
            handlers = list(self._handlers.get(topic, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler {_handler_name(handler)} error for {topic} "
                    f"(event {event.event_id}): {e}",
                    exc_info=True
                )

    def get_history(self, event_type: Optional[Topic] = None, source: Optional[str] = None,
                    limit: int = 50) -> List[Event]:
        """最近发布的事件，最新的在前，可按类型或发布方筛选"""
        topic = _topic(event_type) if event_type else None
        matched = [
            e for e in reversed(self._recent)
            if (topic is None or _topic(e.event_type) == topic)
            and (source is None or e.source == source)
        ]
        return matched[:limit]

    def clear_subscribers(self) -> None:
        """清空所有订阅（用于测试）"""
        with self._handlers_lock:
            self._handlers.clear()

    def clear_history(self) -> None:
        self._recent.clear()


# 全局事件总线实例
event_bus = EventBus()
