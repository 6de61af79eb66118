"""
Boost BLE 数据模型定义
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from .enums import CommandKind

__all__ = (
    "HubDevice",
    "Advertisement",
    "MotorTimeCommand",
    "MotorAngleCommand",
    "LedCommand",
    "Command",
)


@dataclass(frozen=True)
class HubDevice:
    """
    Move Hub 设备信息

    :ivar uuid: 外设标识 (地址去掉分隔符后的小写形式)
    :ivar address: 设备地址 (MAC 或 CoreBluetooth UUID)
    :ivar name: 广播名称
    :ivar rssi: 信号强度
    """
    uuid: str
    address: str
    name: Optional[str] = None
    rssi: Optional[int] = None

    @classmethod
    def from_address(
        cls,
        address: str,
        name: Optional[str] = None,
        rssi: Optional[int] = None
    ) -> "HubDevice":
        """由地址构建设备信息，uuid 自动生成"""
        uuid = address.replace(":", "").replace("-", "").lower()
        return cls(uuid=uuid, address=address, name=name, rssi=rssi)

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} ({self.address})"
        return self.address


@dataclass(frozen=True)
class Advertisement:
    """
    广播记录

    :ivar service_uuids: 广播的服务 UUID 列表 (保持原始顺序)
    :ivar local_name: 广播名称
    :ivar address: 设备地址
    :ivar rssi: 信号强度
    """
    service_uuids: Tuple[str, ...] = field(default_factory=tuple)
    local_name: Optional[str] = None
    address: Optional[str] = None
    rssi: Optional[int] = None


@dataclass(frozen=True)
class MotorTimeCommand:
    """
    马达按时长运行

    :ivar port: 端口代码 (0-255)
    :ivar milliseconds: 运行时长 (毫秒)
    :ivar duty_cycle: 功率百分比 (-100..100)，负数反转
    """
    port: int
    milliseconds: int
    duty_cycle: int = 100

    @property
    def kind(self) -> CommandKind:
        return CommandKind.MOTOR_TIME


@dataclass(frozen=True)
class MotorAngleCommand:
    """
    马达转动指定角度

    :ivar port: 端口代码 (0-255)
    :ivar angle: 角度 (编码器单位)
    :ivar duty_cycle: 功率百分比 (-100..100)，负数反转
    """
    port: int
    angle: int
    duty_cycle: int = 100

    @property
    def kind(self) -> CommandKind:
        return CommandKind.MOTOR_ANGLE


@dataclass(frozen=True)
class LedCommand:
    """
    设置 LED 颜色

    :ivar color: 颜色序号 (0-10)
    """
    color: int

    @property
    def kind(self) -> CommandKind:
        return CommandKind.LED_COLOR


Command = Union[MotorTimeCommand, MotorAngleCommand, LedCommand]
