"""
Move Hub 持续发现

扫描广播，发现 Hub 后上报 hub-found 并立即交给会话连接。
"""
import asyncio
import logging
from typing import Any, Callable, Optional, Union

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..ble.enums import HubEvent, SessionState
from ..ble.events import EventEmitter
from ..ble.exceptions import BoostError
from ..ble.models import Advertisement
from ..ble.scanner import advertisement_from_bleak, hub_device_from_advertisement, is_hub_advertisement
from ..client.ble import BoostHubSession
from ..config import HubConfig

__all__ = ("HubDiscovery",)

logger = logging.getLogger(__name__)

DetectionCallback = Callable[[BLEDevice, AdvertisementData], None]
ScannerFactory = Callable[[DetectionCallback], Any]


def _bleak_scanner(detection_callback: DetectionCallback) -> BleakScanner:
    return BleakScanner(detection_callback=detection_callback)


class HubDiscovery:
    """
    Move Hub 发现器

    发现器与会话共用同一个事件分发器，订阅一次即可收到全部通知::

        discovery = HubDiscovery()
        discovery.on("hub-found", lambda hub: print(hub))
        session = await discovery.run(timeout=30)
        await session.set_led("green")

    同一时间只会连接一个 Hub，会话断开前忽略其他广播。

    :param config: 连接配置
    :param session: 使用的会话，默认新建
    :param scanner_factory: 由检测回调创建扫描器的工厂，扫描器需提供 start()/stop()
    """

    def __init__(
        self,
        config: Optional[HubConfig] = None,
        session: Optional[BoostHubSession] = None,
        scanner_factory: Optional[ScannerFactory] = None
    ):
        self._config = config or (session.config if session else HubConfig())
        self._session = session or BoostHubSession(config=self._config)
        self._emitter: EventEmitter = self._session.emitter
        self._scanner_factory = scanner_factory or _bleak_scanner
        self._scanner = None
        self._scanning = False
        self._claimed = False
        self._connect_task: Optional[asyncio.Task] = None
        self._attempt_done: Optional[asyncio.Event] = None

        self._emitter.on(HubEvent.DISCONNECTED, self._on_session_disconnected)

    @property
    def session(self) -> BoostHubSession:
        return self._session

    @property
    def scanning(self) -> bool:
        return self._scanning

    def on(self, event: Union[HubEvent, str], listener: Callable) -> Callable[[], None]:
        """注册事件监听器"""
        return self._emitter.on(event, listener)

    def _set_scanning(self, scanning: bool):
        if scanning != self._scanning:
            self._scanning = scanning
            self._emitter.emit(HubEvent.SCANNING_STATE_CHANGED, scanning)

    async def start(self) -> bool:
        """
        开始扫描

        :return: 是否成功启动
        """
        if self._scanning:
            return True

        self._scanner = self._scanner_factory(self._detection_callback)
        try:
            await self._scanner.start()
        except Exception as e:
            logger.error(f"启动扫描失败: {type(e).__name__}: {e}")
            self._scanner = None
            self._set_scanning(False)
            self._emitter.emit(HubEvent.ERROR, BoostError(f"Failed to start scanning: {e}"))
            return False

        logger.info("正在扫描 Move Hub...")
        self._set_scanning(True)
        return True

    async def stop(self):
        """停止扫描"""
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            try:
                await scanner.stop()
            except Exception as e:
                logger.warning(f"停止扫描失败: {type(e).__name__}: {e}")
        self._set_scanning(False)

    def _detection_callback(self, device: BLEDevice, adv_data: AdvertisementData):
        self.handle_advertisement(advertisement_from_bleak(device, adv_data), device)

    def handle_advertisement(self, adv: Advertisement, peripheral: Any = None) -> Optional[asyncio.Task]:
        """
        处理一条广播

        匹配时上报 hub-found，停止扫描并发起一次连接。

        :param adv: 广播记录
        :param peripheral: 传给会话的外设 (BLEDevice 或地址)，默认使用广播地址
        :return: 连接任务，未匹配或已有 Hub 时返回 None
        """
        if self._claimed or not is_hub_advertisement(adv, self._config.service_uuid):
            return None

        self._claimed = True
        hub = hub_device_from_advertisement(adv)
        logger.info(f"发现 Move Hub: {hub}")
        self._emitter.emit(HubEvent.HUB_FOUND, hub)

        self._connect_task = asyncio.get_running_loop().create_task(
            self._connect(peripheral if peripheral is not None else hub)
        )
        self._connect_task.add_done_callback(self._on_connect_done)
        return self._connect_task

    async def _connect(self, peripheral: Any) -> bool:
        await self.stop()
        connected = await self._session.connect(peripheral)
        if self._session.state is SessionState.DISCONNECTED:
            # 连接失败，允许调用方重新发现
            self._claimed = False
        return connected

    def _on_session_disconnected(self):
        self._claimed = False

    def _on_connect_done(self, task: asyncio.Task):
        if self._attempt_done is not None:
            self._attempt_done.set()

    async def _until_ready(self, attempt_done: asyncio.Event):
        while not self._session.ready:
            task = self._connect_task
            if task is not None and task.done() and not task.result():
                raise self._session.last_error or BoostError("Hub did not become ready")
            await attempt_done.wait()
            attempt_done.clear()

    async def run(self, timeout: Optional[float] = None) -> BoostHubSession:
        """
        扫描并等待会话就绪

        :param timeout: 超时时间 (秒)，None 表示一直等待
        :return: 就绪的会话
        :raises asyncio.TimeoutError: 超时
        :raises BoostError: 无法扫描，或发现的 Hub 未能就绪
        """
        if self._session.ready:
            return self._session

        self._connect_task = None
        if not await self.start():
            raise BoostError("Failed to start scanning")

        # 连接成功或连接任务结束时唤醒
        attempt_done = asyncio.Event()
        self._attempt_done = attempt_done
        unsubscribe = self._emitter.on(HubEvent.CONNECTED, lambda *args: attempt_done.set())
        try:
            await asyncio.wait_for(self._until_ready(attempt_done), timeout=timeout)
        except asyncio.TimeoutError:
            await self.stop()
            raise
        finally:
            unsubscribe()
            self._attempt_done = None
        return self._session
