"""
同步回调接口

在独立线程中运行事件循环，提供不依赖 asyncio 的 Hub 控制接口。
"""
import asyncio
import logging
import threading
from typing import Callable, Optional, Union

from ..ble.enums import HubColor, HubEvent, HubPort, SessionState
from ..ble.events import EventEmitter
from ..ble.exceptions import BoostError
from ..client.ble import BoostHubSession
from ..config import HubConfig
from .discovery import HubDiscovery

__all__ = ("BoostHubThread", "BoostHub")

logger = logging.getLogger(__name__)

DiscoveryFactory = Callable[[EventEmitter], HubDiscovery]
CommandCallback = Callable[[Optional[Exception]], None]


class BoostHubThread(threading.Thread):
    """独立的 BLE 线程，运行自己的事件循环"""

    def __init__(self, discovery_factory: DiscoveryFactory, emitter: EventEmitter):
        super().__init__(daemon=True, name="BoostHubThread")
        self._discovery_factory = discovery_factory
        self._emitter = emitter
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._discovery: Optional[HubDiscovery] = None
        self._ready = threading.Event()
        self._should_stop = False

    @property
    def discovery(self) -> Optional[HubDiscovery]:
        return self._discovery

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout=timeout)

    def run(self):
        """线程主函数"""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            # 会话内部的 asyncio 对象必须在本线程中创建
            self._discovery = self._discovery_factory(self._emitter)
            self._ready.set()
            logger.debug("BLE 线程: 事件循环开始运行")
            self._loop.run_forever()
        finally:
            self._ready.set()
            try:
                self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            finally:
                self._loop.close()
            logger.debug("BLE 线程: 事件循环已关闭")

    def run_coro(self, coro, timeout: Optional[float] = None):
        """
        在 BLE 线程中运行协程并返回结果（阻塞）

        :raises BoostError: BLE 线程不可用
        """
        if self._should_stop or not self._loop or self._loop.is_closed():
            # 协程需要关闭以避免警告
            coro.close()
            raise BoostError("BLE thread is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout=timeout)

    def fire_and_forget(self, coro) -> bool:
        """在 BLE 线程中运行协程（非阻塞，不等待结果）"""
        if self._should_stop or not self._loop or self._loop.is_closed():
            logger.warning("fire_and_forget: BLE 线程不可用")
            coro.close()
            return False
        asyncio.run_coroutine_threadsafe(coro, self._loop)
        return True

    def stop(self):
        """停止 BLE 线程"""
        self._should_stop = True
        if self._loop and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._loop.stop)


class BoostHub:
    """
    Move Hub 同步接口

    扫描、连接和命令都在后台线程中执行，事件监听器与命令回调在该线程中调用::

        hub = BoostHub()
        hub.on("hub-found", lambda device: print(device))
        hub.start(timeout=30)
        hub.motor_time("A", 1000, -50)
        hub.led("red", callback=lambda err: print("done", err))
        hub.stop()

    不提供回调时命令阻塞到写入完成，错误直接抛出；
    提供回调时立即返回，错误 (包括会话未就绪) 通过回调参数传递。

    :param config: 连接配置
    :param discovery_factory: 由事件分发器创建发现器的工厂
    """

    def __init__(
        self,
        config: Optional[HubConfig] = None,
        discovery_factory: Optional[DiscoveryFactory] = None
    ):
        self._config = config or HubConfig()
        self._emitter = EventEmitter()
        self._discovery_factory = discovery_factory or self._default_discovery
        self._thread: Optional[BoostHubThread] = None

    def _default_discovery(self, emitter: EventEmitter) -> HubDiscovery:
        session = BoostHubSession(config=self._config, emitter=emitter)
        return HubDiscovery(config=self._config, session=session)

    @property
    def session(self) -> Optional[BoostHubSession]:
        if self._thread is None or self._thread.discovery is None:
            return None
        return self._thread.discovery.session

    @property
    def state(self) -> SessionState:
        session = self.session
        return session.state if session else SessionState.IDLE

    @property
    def connected(self) -> bool:
        return self.state is SessionState.READY

    def on(self, event: Union[HubEvent, str], listener: Callable) -> Callable[[], None]:
        """注册事件监听器 (在 BLE 线程中调用)"""
        return self._emitter.on(event, listener)

    def _require_thread(self) -> BoostHubThread:
        if self._thread is None:
            raise BoostError("Hub is not started")
        return self._thread

    def start(self, timeout: Optional[float] = None) -> "BoostHub":
        """
        启动 BLE 线程并扫描，直到连接就绪

        :param timeout: 超时时间 (秒)，None 表示一直等待
        :raises asyncio.TimeoutError: 超时
        """
        if self._thread is None:
            self._thread = BoostHubThread(self._discovery_factory, self._emitter)
            self._thread.start()
            self._thread.wait_ready()

        discovery = self._thread.discovery
        if discovery is None:
            raise BoostError("BLE thread failed to start")

        self._thread.run_coro(discovery.run(timeout=timeout))
        return self

    def _dispatch(self, coro_factory, callback: Optional[CommandCallback], timeout: Optional[float]):
        thread = self._require_thread()
        if callback is None:
            return thread.run_coro(coro_factory(None), timeout=timeout)

        async def _with_callback():
            try:
                await coro_factory(callback)
            except BoostError as e:
                callback(e)
            except Exception as e:
                logger.error(f"命令执行失败: {type(e).__name__}: {e}")
                callback(e)

        thread.fire_and_forget(_with_callback())

    def motor_time(
        self,
        port: Union[str, int, HubPort],
        milliseconds: int,
        duty_cycle: int = 100,
        callback: Optional[CommandCallback] = None,
        timeout: Optional[float] = 5.0
    ):
        """
        马达按时长运行

        :param port: 端口 (``A``/``B``/``AB``/``C``/``D`` 或端口代码)
        :param milliseconds: 运行时长 (毫秒)
        :param duty_cycle: 功率百分比 (-100..100)
        :param callback: 完成回调
        :param timeout: 阻塞等待时间 (秒)，仅在无回调时使用
        """
        session = self._require_session()
        self._dispatch(
            lambda cb: session.run_motor_for_duration(port, milliseconds, duty_cycle, cb),
            callback,
            timeout
        )

    def motor_angle(
        self,
        port: Union[str, int, HubPort],
        angle: int,
        duty_cycle: int = 100,
        callback: Optional[CommandCallback] = None,
        timeout: Optional[float] = 5.0
    ):
        """
        马达转动指定角度

        :param port: 端口 (``A``/``B``/``AB``/``C``/``D`` 或端口代码)
        :param angle: 角度 (0-360°)
        :param duty_cycle: 功率百分比 (-100..100)
        :param callback: 完成回调
        :param timeout: 阻塞等待时间 (秒)，仅在无回调时使用
        """
        session = self._require_session()
        self._dispatch(
            lambda cb: session.run_motor_to_angle(port, angle, duty_cycle, cb),
            callback,
            timeout
        )

    def led(
        self,
        color: Union[bool, str, int, HubColor],
        callback: Optional[CommandCallback] = None,
        timeout: Optional[float] = 5.0
    ):
        """
        设置 Hub LED 颜色

        :param color: ``False``/``True`` 或颜色名称
        :param callback: 完成回调
        :param timeout: 阻塞等待时间 (秒)，仅在无回调时使用
        """
        session = self._require_session()
        self._dispatch(lambda cb: session.set_led(color, cb), callback, timeout)

    def disconnect(self, timeout: Optional[float] = 5.0):
        """断开 Hub 连接，未连接时不做任何操作"""
        session = self.session
        if session is None:
            return
        self._require_thread().run_coro(session.disconnect(), timeout=timeout)

    def stop(self, timeout: Optional[float] = 5.0):
        """断开连接并停止 BLE 线程"""
        if self._thread is None:
            return
        discovery = self._thread.discovery
        if discovery is not None:
            try:
                self._thread.run_coro(discovery.stop(), timeout=timeout)
                self._thread.run_coro(discovery.session.disconnect(), timeout=timeout)
            except BoostError as e:
                logger.warning(f"停止时出错: {e}")
        self._thread.stop()
        self._thread.join(timeout=timeout)
        self._thread = None

    def _require_session(self) -> BoostHubSession:
        session = self.session
        if session is None:
            raise BoostError("Hub is not started")
        return session

    def __enter__(self) -> "BoostHub":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
