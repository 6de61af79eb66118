"""
Boost Move Hub BLE 模块

此模块提供 Move Hub 的广播识别、命令帧编解码与 BLE 传输。
"""

from .enums import *
from .events import *
from .exceptions import *
from .models import *
from .protocol import *
from .scanner import *
from .transport import *
from .utils import *

__all__ = (
    # enums
    "HubPort",
    "HubColor",
    "CommandKind",
    "SessionState",
    "HubEvent",
    # events
    "EventEmitter",
    # exceptions
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
    # models
    "HubDevice",
    "Advertisement",
    "MotorTimeCommand",
    "MotorAngleCommand",
    "LedCommand",
    "Command",
    # protocol
    "BoostProtocol",
    # scanner
    "BoostScanner",
    "is_hub_advertisement",
    "advertisement_from_bleak",
    "hub_device_from_advertisement",
    # transport
    "HubTransport",
    "BleakHubTransport",
    # utils
    "lsb16",
    "encode_duty_cycle",
    "resolve_port",
    "resolve_color",
    "normalize_uuid",
    "with_timeout",
)
