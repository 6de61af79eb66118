"""
事件分发
"""
import logging
from typing import Any, Callable, Dict, List, Union

from .enums import HubEvent

__all__ = ("EventEmitter",)

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """
    简单的发布/订阅事件分发器

    监听器在发出事件的线程/事件循环中同步调用，抛出的异常只记录日志，
    不影响其他监听器。
    """

    def __init__(self):
        self._listeners: Dict[HubEvent, List[Listener]] = {}

    def on(self, event: Union[HubEvent, str], listener: Listener) -> Callable[[], None]:
        """
        注册监听器

        :param event: 事件名
        :param listener: 回调
        :return: 取消注册函数
        """
        event = HubEvent(event)
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe():
            self.off(event, listener)

        return unsubscribe

    def once(self, event: Union[HubEvent, str], listener: Listener) -> Callable[[], None]:
        """注册只触发一次的监听器"""
        def wrapper(*args):
            unsubscribe()
            listener(*args)

        unsubscribe = self.on(event, wrapper)
        return unsubscribe

    def off(self, event: Union[HubEvent, str], listener: Listener) -> None:
        """取消注册监听器"""
        listeners = self._listeners.get(HubEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: Union[HubEvent, str]) -> int:
        return len(self._listeners.get(HubEvent(event), []))

    def emit(self, event: HubEvent, *args) -> None:
        """
        发出事件

        :param event: 事件名
        :param args: 事件参数
        """
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"{event.value} 监听器异常: {type(e).__name__}: {e}")
