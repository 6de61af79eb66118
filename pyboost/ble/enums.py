"""
Boost Move Hub 协议枚举定义
"""
import enum
from enum import Enum, IntEnum

__all__ = (
    "HubPort",
    "HubColor",
    "CommandKind",
    "SessionState",
    "HubEvent",
)


@enum.unique
class HubPort(IntEnum):
    """
    Move Hub 马达端口枚举

    :ivar A: 内置马达 A
    :ivar B: 内置马达 B
    :ivar AB: A/B 同步马达组
    :ivar C: 外接端口 C
    :ivar D: 外接端口 D
    """
    A = 0x37
    B = 0x38
    AB = 0x39
    C = 0x01
    D = 0x02


@enum.unique
class HubColor(IntEnum):
    """
    Move Hub LED 颜色枚举

    取值即协议中的颜色序号 (0-10)，顺序固定，不可调整。
    """
    OFF = 0
    PINK = 1
    PURPLE = 2
    BLUE = 3
    LIGHTBLUE = 4
    CYAN = 5
    GREEN = 6
    YELLOW = 7
    ORANGE = 8
    RED = 9
    WHITE = 10


@enum.unique
class CommandKind(Enum):
    """
    命令类型枚举

    :ivar MOTOR_TIME: 马达按时长运行 (12 字节帧)
    :ivar MOTOR_ANGLE: 马达转动指定角度 (14 字节帧)
    :ivar LED_COLOR: 设置 LED 颜色 (8 字节帧)
    """
    MOTOR_TIME = "motor-time"
    MOTOR_ANGLE = "motor-angle"
    LED_COLOR = "led-color"


@enum.unique
class SessionState(Enum):
    """
    设备会话状态枚举

    :ivar IDLE: 尚未连接
    :ivar CONNECTING: 正在建立 GATT 连接
    :ivar CONNECTED: 已连接，尚无可写特征
    :ivar SUBSCRIBING: 已找到控制特征，正在订阅通知
    :ivar READY: 已订阅，可以写入命令
    :ivar DISCONNECTED: 已断开
    """
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBING = "subscribing"
    READY = "ready"
    DISCONNECTED = "disconnected"


@enum.unique
class HubEvent(str, Enum):
    """
    对外通知事件名

    :ivar SCANNING_STATE_CHANGED: 扫描状态变化，参数 bool
    :ivar HUB_FOUND: 发现 Hub，参数 HubDevice
    :ivar CONNECTED: 会话就绪，无参数
    :ivar DISCONNECTED: 会话断开，无参数
    :ivar ERROR: 传输层错误，参数为异常对象
    :ivar DATA_RECEIVED: 收到原始通知数据，参数 bytes
    """
    SCANNING_STATE_CHANGED = "scanning-state-changed"
    HUB_FOUND = "hub-found"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    DATA_RECEIVED = "data-received"
