"""
Boost BLE 工具函数
"""
import asyncio
import math
from typing import Awaitable, Optional, Tuple, TypeVar, Union

from .enums import HubColor, HubPort
from .exceptions import InvalidColorError, InvalidDutyCycleError, InvalidNumberError, InvalidPortError

__all__ = (
    "check_number",
    "lsb16",
    "encode_duty_cycle",
    "resolve_port",
    "resolve_color",
    "normalize_uuid",
    "with_timeout",
    "PORT_CODES",
    "COLOR_NAMES",
)

_T = TypeVar("_T")

# 端口名称到协议代码的映射
PORT_CODES = {port.name: port.value for port in HubPort}

# LED 颜色名称，按协议序号排列
COLOR_NAMES = tuple(color.name.lower() for color in HubColor)


def check_number(value: Union[int, float]) -> Union[int, float]:
    """
    校验时长/角度参数

    :param value: 数值
    :return: 原值
    :raises InvalidNumberError: 不是有限的 int/float
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidNumberError(value)
    return value


def lsb16(value: Union[int, float]) -> Tuple[int, int]:
    """
    拆分 16 位小端序

    小数部分向零截断，超出 16 位的部分直接截断 (与固件行为一致)

    :param value: 数值
    :return: (低字节, 高字节)
    :raises InvalidNumberError: 不是有限数值
    """
    value = int(check_number(value))
    return value & 0xFF, (value >> 8) & 0xFF


def encode_duty_cycle(duty_cycle: int) -> int:
    """
    编码占空比

    0..100 原样输出，负数按 0xFF + duty_cycle 编码 (例如 -10 -> 245)

    :param duty_cycle: 功率百分比 (-100..100)
    :return: 单字节编码值
    :raises InvalidDutyCycleError: 超出范围
    """
    if isinstance(duty_cycle, bool) or not isinstance(duty_cycle, int):
        raise InvalidDutyCycleError(duty_cycle)
    if not -100 <= duty_cycle <= 100:
        raise InvalidDutyCycleError(duty_cycle)
    if duty_cycle < 0:
        return 0xFF + duty_cycle
    return duty_cycle


def resolve_port(port: Union[str, int, HubPort]) -> int:
    """
    将端口名称解析为协议代码

    支持 ``A``/``B``/``AB``/``C``/``D`` (不区分大小写)、HubPort 或 0-255 的原始代码

    :param port: 端口
    :return: 端口代码
    :raises InvalidPortError: 未知端口
    """
    if isinstance(port, HubPort):
        return port.value
    if isinstance(port, str):
        code = PORT_CODES.get(port.strip().upper())
        if code is None:
            raise InvalidPortError(port)
        return code
    if isinstance(port, int) and not isinstance(port, bool) and 0 <= port <= 0xFF:
        return port
    raise InvalidPortError(port)


def resolve_color(color: Union[bool, str, int, HubColor]) -> int:
    """
    将颜色解析为协议序号

    ``False`` 视为 off，``True`` 视为 white

    :param color: 颜色
    :return: 颜色序号 (0-10)
    :raises InvalidColorError: 未知颜色
    """
    # bool 是 int 的子类，必须先判断
    if color is False:
        return HubColor.OFF.value
    if color is True:
        return HubColor.WHITE.value
    if isinstance(color, HubColor):
        return color.value
    if isinstance(color, str):
        name = color.strip().lower()
        if name not in COLOR_NAMES:
            raise InvalidColorError(color)
        return COLOR_NAMES.index(name)
    if isinstance(color, int) and HubColor.OFF <= color <= HubColor.WHITE:
        return int(color)
    raise InvalidColorError(color)


def normalize_uuid(uuid: str) -> str:
    """
    归一化 UUID 以便比较

    去掉连字符并转为小写，使 ``00001623-1212-efde-...`` 与 ``000016231212efde...`` 相等

    :param uuid: UUID 字符串
    :return: 32 位十六进制小写字符串
    """
    return uuid.replace("-", "").strip().lower()


async def with_timeout(awaitable: Awaitable[_T], timeout: Optional[float]) -> _T:
    """
    可选超时包装

    :param awaitable: 待等待对象
    :param timeout: 超时时间 (秒)，None 表示不限时
    :return: 等待结果
    :raises asyncio.TimeoutError: 超时
    """
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)
