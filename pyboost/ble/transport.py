"""
BLE 传输层

会话只依赖 HubTransport 接口，默认实现基于 bleak。
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union

from bleak import BleakClient
from bleak.backends.device import BLEDevice

from .models import HubDevice

__all__ = (
    "HubTransport",
    "BleakHubTransport",
    "NotificationHandler",
)

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[bytes], None]


class HubTransport(ABC):
    """
    BLE 传输接口

    只负责 GATT 原语，不包含任何协议或状态机逻辑。
    """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """是否已连接"""

    @abstractmethod
    async def connect(self) -> None:
        """建立 GATT 连接，失败时抛出异常"""

    @abstractmethod
    async def disconnect(self) -> None:
        """断开连接，可重复调用"""

    @abstractmethod
    async def discover_characteristics(self) -> List[str]:
        """
        枚举全部服务的特征

        :return: 特征 UUID 列表
        """

    @abstractmethod
    async def start_notify(self, characteristic: str, handler: NotificationHandler) -> None:
        """
        订阅特征通知

        :param characteristic: 特征 UUID
        :param handler: 通知回调，参数为原始字节
        """

    @abstractmethod
    async def write(self, characteristic: str, data: bytes, response: bool = True) -> None:
        """
        写入特征

        :param characteristic: 特征 UUID
        :param data: 数据
        :param response: 是否要求响应
        """

    @abstractmethod
    def set_disconnected_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """设置链路意外断开时的回调"""


class BleakHubTransport(HubTransport):
    """
    基于 bleak 的传输实现

    :param device: 设备地址、BLEDevice 对象或 HubDevice 对象
    """

    def __init__(self, device: Union[str, BLEDevice, HubDevice]):
        if isinstance(device, (HubDevice, BLEDevice)):
            self._device_address = device.address
        else:
            self._device_address = device

        # BLEDevice 直接传给 BleakClient，省去一次扫描
        target = device if isinstance(device, BLEDevice) else self._device_address
        self._client = BleakClient(target, disconnected_callback=self._on_disconnected)
        self._disconnected_callback: Optional[Callable[[], None]] = None

    @property
    def address(self) -> str:
        return self._device_address

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def discover_characteristics(self) -> List[str]:
        # bleak 在 connect() 时已完成服务发现
        return [
            characteristic.uuid
            for service in self._client.services
            for characteristic in service.characteristics
        ]

    async def start_notify(self, characteristic: str, handler: NotificationHandler) -> None:
        def _notification_handler(sender, data: bytearray):
            handler(bytes(data))

        await self._client.start_notify(characteristic, _notification_handler)

    async def write(self, characteristic: str, data: bytes, response: bool = True) -> None:
        await self._client.write_gatt_char(characteristic, data, response=response)

    def set_disconnected_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self._disconnected_callback = callback

    def _on_disconnected(self, client: BleakClient) -> None:
        logger.debug(f"BLE 链路断开: {self._device_address}")
        if self._disconnected_callback is not None:
            self._disconnected_callback()
