"""
Boost Move Hub BLE 会话

管理 发现 -> 连接 -> 订阅 -> 就绪 -> 断开 的完整生命周期，并提供马达/LED 命令接口。
"""
import asyncio
import logging
from typing import AsyncGenerator, Callable, Optional, Union

from bleak.backends.device import BLEDevice

from ..ble.enums import HubColor, HubEvent, HubPort, SessionState
from ..ble.events import EventEmitter
from ..ble.exceptions import (
    BoostError,
    InvalidStateError,
    ServiceDiscoveryError,
    SubscribeError,
    TransportConnectError,
    TransportError,
    WriteError,
)
from ..ble.models import Command, HubDevice, LedCommand, MotorAngleCommand, MotorTimeCommand
from ..ble.protocol import BoostProtocol
from ..ble.transport import BleakHubTransport, HubTransport
from ..ble.utils import normalize_uuid, resolve_color, resolve_port, with_timeout
from ..config import HubConfig

__all__ = ("BoostHubSession",)

logger = logging.getLogger(__name__)

_Device = Union[str, BLEDevice, HubDevice]
WriteCallback = Callable[[Optional[WriteError]], None]
TransportFactory = Callable[[_Device], HubTransport]

# 通知队列上限，满时丢弃最旧的数据
NOTIFICATION_QUEUE_SIZE = 256

# 允许断开的状态
_CONNECTED_STATES = (SessionState.CONNECTED, SessionState.SUBSCRIBING, SessionState.READY)


class BoostHubSession:
    """
    Move Hub 会话

    一个会话对应一条 Hub 连接，不在线程/任务间共享。

    使用示例::

        async with BoostHubSession("XX:XX:XX:XX:XX:XX") as hub:
            await hub.run_motor_for_duration("A", 1000, -50)
            await hub.set_led("red")

    传输层错误通过 ``error`` 事件上报，不会抛出；写入错误通过回调或异常逐次上报。
    会话不做任何自动重连或重试。

    :param device: 设备地址、BLEDevice 对象或 HubDevice 对象，也可在 connect() 时指定
    :param config: 连接配置
    :param transport_factory: 由设备创建传输对象的工厂，默认使用 bleak
    :param emitter: 共享的事件分发器
    """

    def __init__(
        self,
        device: Optional[_Device] = None,
        config: Optional[HubConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        emitter: Optional[EventEmitter] = None
    ):
        self._device = device
        self._config = config or HubConfig()
        self._transport_factory = transport_factory or BleakHubTransport
        self._emitter = emitter or EventEmitter()

        self._transport: Optional[HubTransport] = None
        self._state = SessionState.IDLE
        self._write_channel: Optional[str] = None
        self._last_error: Optional[BoostError] = None

        # 每次连接/断开递增，用于丢弃过期的回调与通知
        self._generation = 0

        # 同一时间只允许一个写入
        self._write_lock = asyncio.Lock()

        # 通知队列
        self._notification_queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=NOTIFICATION_QUEUE_SIZE)

    # ==================== 状态 ====================

    @property
    def state(self) -> SessionState:
        """当前会话状态"""
        return self._state

    @property
    def ready(self) -> bool:
        """是否可以写入命令"""
        return self._state is SessionState.READY

    @property
    def write_channel(self) -> Optional[str]:
        """控制特征 UUID (仅在就绪时存在)"""
        return self._write_channel

    @property
    def device(self) -> Optional[_Device]:
        return self._device

    @property
    def config(self) -> HubConfig:
        return self._config

    @property
    def emitter(self) -> EventEmitter:
        return self._emitter

    @property
    def last_error(self) -> Optional[BoostError]:
        """最近一次通过 error 事件上报的错误"""
        return self._last_error

    def on(self, event: Union[HubEvent, str], listener: Callable) -> Callable[[], None]:
        """
        注册事件监听器

        :param event: 事件名
        :param listener: 回调
        :return: 取消注册函数
        """
        return self._emitter.on(event, listener)

    def _set_state(self, state: SessionState):
        if state is not self._state:
            logger.debug(f"会话状态: {self._state.value} -> {state.value}")
            self._state = state

    def _report_error(self, error: BoostError):
        self._last_error = error
        self._emitter.emit(HubEvent.ERROR, error)

    def _address(self) -> str:
        device = self._device
        if isinstance(device, (HubDevice, BLEDevice)):
            return device.address
        return str(device)

    # ==================== 连接管理 ====================

    async def connect(self, device: Optional[_Device] = None) -> bool:
        """
        连接到 Hub

        连接成功后自动枚举特征并订阅控制特征。

        :param device: 设备，未指定时使用构造时的设备
        :return: 是否进入就绪状态
        :raises InvalidStateError: 会话已在连接中或已连接
        """
        if self._state not in (SessionState.IDLE, SessionState.DISCONNECTED):
            raise InvalidStateError("connect", self._state)
        if device is not None:
            self._device = device
        if self._device is None:
            raise ValueError("No device to connect to")

        self._generation += 1
        generation = self._generation
        self._write_channel = None
        self._last_error = None

        transport = self._transport_factory(self._device)
        transport.set_disconnected_callback(lambda: self._on_link_lost(generation))
        self._transport = transport
        self._set_state(SessionState.CONNECTING)

        logger.info(f"正在连接 Hub: {self._address()}")
        try:
            await with_timeout(transport.connect(), self._config.operation_timeout)
        except asyncio.TimeoutError:
            return self._connect_failed(generation, "timed out")
        except Exception as e:
            return self._connect_failed(generation, f"{type(e).__name__}: {e}")

        if generation != self._generation:
            return False

        self._set_state(SessionState.CONNECTED)
        logger.info(f"Hub 已连接: {self._address()}")

        await self._discover(generation)
        return generation == self._generation and self.ready

    def _connect_failed(self, generation: int, reason: str) -> bool:
        if generation == self._generation:
            self._set_state(SessionState.DISCONNECTED)
            logger.warning(f"Hub 连接失败: {self._address()} ({reason})")
            self._report_error(TransportConnectError(self._address(), reason))
        return False

    async def _discover(self, generation: int):
        """枚举特征并订阅控制特征"""
        transport = self._transport
        timeout = self._config.operation_timeout

        try:
            characteristics = await with_timeout(transport.discover_characteristics(), timeout)
        except Exception as e:
            if generation == self._generation:
                error = ServiceDiscoveryError(f"Characteristic discovery failed: {type(e).__name__}: {e}")
                logger.error(str(error))
                self._report_error(error)
            return

        if generation != self._generation:
            return

        target = normalize_uuid(self._config.characteristic_uuid)
        characteristic = next(
            (uuid for uuid in characteristics if normalize_uuid(uuid) == target),
            None
        )
        if characteristic is None:
            logger.warning(f"未找到控制特征 {self._config.characteristic_uuid}，会话不可写入")
            return

        self._set_state(SessionState.SUBSCRIBING)
        try:
            await with_timeout(
                transport.start_notify(characteristic, lambda data: self._on_notification(generation, data)),
                timeout
            )
        except Exception as e:
            if generation == self._generation:
                self._set_state(SessionState.CONNECTED)
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else f"{type(e).__name__}: {e}"
                logger.warning(f"订阅控制特征失败: {reason}")
                self._report_error(SubscribeError(characteristic, reason))
            return

        if generation != self._generation:
            return

        self._write_channel = characteristic
        self._set_state(SessionState.READY)
        logger.info(f"Hub 已就绪: {self._address()}")
        self._emitter.emit(HubEvent.CONNECTED)

    async def disconnect(self):
        """
        断开 Hub 连接

        未连接时不做任何操作。
        """
        if self._state not in _CONNECTED_STATES:
            logger.debug(f"disconnect() 忽略: 会话状态为 {self._state.value}")
            return

        # 先使进行中的回调失效，bleak 在主动断开时同样会触发断开回调
        self._generation += 1
        self._write_channel = None
        transport = self._transport

        try:
            await with_timeout(transport.disconnect(), self._config.operation_timeout)
        except Exception as e:
            logger.warning(f"断开 Hub 时出错: {type(e).__name__}: {e}")
            self._report_error(TransportError(f"Disconnect failed: {type(e).__name__}: {e}"))

        self._set_state(SessionState.DISCONNECTED)
        logger.info(f"Hub 已断开: {self._address()}")
        self._emitter.emit(HubEvent.DISCONNECTED)

    def _on_link_lost(self, generation: int):
        """链路意外断开"""
        if generation != self._generation or self._state not in _CONNECTED_STATES:
            return
        self._generation += 1
        self._write_channel = None
        self._set_state(SessionState.DISCONNECTED)
        logger.warning(f"Hub 连接丢失: {self._address()}")
        self._emitter.emit(HubEvent.DISCONNECTED)

    async def __aenter__(self) -> "BoostHubSession":
        await self.connect()
        if not self.ready:
            if self._last_error is not None:
                raise self._last_error
            raise BoostError(f"Hub did not become ready: {self._address()}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    # ==================== 通知 ====================

    def _on_notification(self, generation: int, data: bytes):
        """控制特征通知处理，数据原样转发"""
        if generation != self._generation:
            return
        data = bytes(data)
        if self._notification_queue.full():
            self._notification_queue.get_nowait()
        self._notification_queue.put_nowait(data)
        self._emitter.emit(HubEvent.DATA_RECEIVED, data)

    async def recv_data(self, timeout: Optional[float] = 1.0) -> Optional[bytes]:
        """
        接收一条原始通知

        :param timeout: 超时时间 (秒)
        :return: 通知数据，超时返回 None
        """
        try:
            return await with_timeout(self._notification_queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def data_generator(self, poll_interval: float = 1.0) -> AsyncGenerator[bytes, None]:
        """
        通知数据生成器，会话离开就绪状态后结束

        :param poll_interval: 检查会话状态的间隔 (秒)
        :yield: 原始通知数据
        """
        while (
            self._state in (SessionState.SUBSCRIBING, SessionState.READY)
            or not self._notification_queue.empty()
        ):
            data = await self.recv_data(timeout=poll_interval)
            if data is not None:
                yield data

    # ==================== 命令 ====================

    async def write(self, command: Command, callback: Optional[WriteCallback] = None):
        """
        编码并写入命令

        :param command: 命令对象
        :param callback: 完成回调，参数为 None 或 WriteError；提供回调时写入错误不会抛出
        :raises InvalidStateError: 会话未就绪
        :raises WriteError: 写入失败且未提供回调
        """
        if self._state is not SessionState.READY:
            raise InvalidStateError("write", self._state)

        frame = BoostProtocol.encode(command)
        generation = self._generation
        error: Optional[WriteError] = None

        async with self._write_lock:
            # 等待锁期间会话可能已断开
            if generation != self._generation or self._state is not SessionState.READY:
                raise InvalidStateError("write", self._state)

            logger.debug(f"写入 {BoostProtocol.describe(frame)}")
            try:
                await with_timeout(
                    self._transport.write(
                        self._write_channel,
                        frame,
                        response=self._config.write_with_response
                    ),
                    self._config.operation_timeout
                )
            except Exception as e:
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else f"{type(e).__name__}: {e}"
                error = WriteError(frame, reason)
                if generation == self._generation:
                    logger.warning(str(error))
                else:
                    logger.debug(f"会话已断开，忽略写入结果: {error}")

        if callback is not None:
            callback(error)
        elif error is not None:
            raise error

    async def run_motor_for_duration(
        self,
        port: Union[str, int, HubPort],
        milliseconds: int,
        duty_cycle: int = 100,
        callback: Optional[WriteCallback] = None
    ):
        """
        马达按时长运行

        :param port: 端口 (``A``/``B``/``AB``/``C``/``D`` 或端口代码)
        :param milliseconds: 运行时长 (毫秒)
        :param duty_cycle: 功率百分比 (-100..100)，负数为逆时针
        :param callback: 完成回调
        """
        command = MotorTimeCommand(resolve_port(port), milliseconds, duty_cycle)
        await self.write(command, callback)

    async def run_motor_to_angle(
        self,
        port: Union[str, int, HubPort],
        angle: int,
        duty_cycle: int = 100,
        callback: Optional[WriteCallback] = None
    ):
        """
        马达转动指定角度

        :param port: 端口 (``A``/``B``/``AB``/``C``/``D`` 或端口代码)
        :param angle: 角度 (0-360°)
        :param duty_cycle: 功率百分比 (-100..100)，负数为逆时针
        :param callback: 完成回调
        """
        command = MotorAngleCommand(resolve_port(port), angle, duty_cycle)
        await self.write(command, callback)

    async def set_led(
        self,
        color: Union[bool, str, int, HubColor],
        callback: Optional[WriteCallback] = None
    ):
        """
        设置 Hub LED 颜色

        :param color: ``False`` 关闭，``True`` 白色，或颜色名称 (off, pink, purple, blue,
            lightblue, cyan, green, yellow, orange, red, white)
        :param callback: 完成回调
        """
        command = LedCommand(resolve_color(color))
        await self.write(command, callback)
