"""
Boost BLE 相关异常定义
"""
from typing import Optional

__all__ = (
    "BoostError",
    "TransportError",
    "TransportConnectError",
    "ServiceDiscoveryError",
    "SubscribeError",
    "WriteError",
    "InvalidStateError",
    "ValidationError",
    "InvalidPortError",
    "InvalidColorError",
    "InvalidDutyCycleError",
    "InvalidNumberError",
    "FrameError",
)


class BoostError(Exception):
    """Boost 通用异常基类"""
    pass


class TransportError(BoostError):
    """BLE 传输层异常基类"""
    pass


class TransportConnectError(TransportError):
    """GATT 连接失败"""

    def __init__(self, address: Optional[str] = None, reason: Optional[str] = None):
        message = f"Failed to connect to hub: {address}" if address else "Failed to connect to hub"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.address = address


class ServiceDiscoveryError(TransportError):
    """服务/特征枚举失败 (非致命，会话保持无写入通道)"""
    pass


class SubscribeError(TransportError):
    """控制特征订阅失败"""

    def __init__(self, characteristic: str, reason: Optional[str] = None):
        message = f"Failed to subscribe to characteristic {characteristic}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.characteristic = characteristic


class WriteError(TransportError):
    """命令写入失败"""

    def __init__(self, frame: bytes, reason: Optional[str] = None):
        message = f"Failed to write frame {frame.hex()}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.frame = frame


class InvalidStateError(BoostError):
    """在当前会话状态下不允许该操作"""

    def __init__(self, operation: str, state):
        super().__init__(f"Cannot {operation} while session is {state.value}")
        self.operation = operation
        self.state = state


class ValidationError(BoostError, ValueError):
    """命令参数校验失败"""
    pass


class InvalidPortError(ValidationError):
    """未知端口"""

    def __init__(self, port):
        super().__init__(f"Unknown motor port: {port!r}")
        self.port = port


class InvalidColorError(ValidationError):
    """未知 LED 颜色"""

    def __init__(self, color):
        super().__init__(f"Unknown LED color: {color!r}")
        self.color = color


class InvalidDutyCycleError(ValidationError):
    """占空比超出 -100..100"""

    def __init__(self, duty_cycle):
        super().__init__(f"Duty cycle out of range [-100, 100]: {duty_cycle!r}")
        self.duty_cycle = duty_cycle


class InvalidNumberError(ValidationError):
    """时长或角度不是有限数值"""

    def __init__(self, value):
        super().__init__(f"Expected a finite number: {value!r}")
        self.value = value


class FrameError(BoostError):
    """无法识别的命令帧"""

    def __init__(self, frame: bytes, reason: str):
        super().__init__(f"Invalid frame {bytes(frame).hex()}: {reason}")
        self.frame = bytes(frame)
