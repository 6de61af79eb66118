"""
Boost Move Hub BLE 协议编解码
"""
from typing import Union

from .enums import CommandKind, HubColor, HubPort
from .exceptions import FrameError
from .models import Command, LedCommand, MotorAngleCommand, MotorTimeCommand
from .utils import check_number, encode_duty_cycle, lsb16, resolve_color

__all__ = ("BoostProtocol",)

# 协议常量
HUB_ID = 0x00
MSG_PORT_OUTPUT = 0x81
STARTUP_AND_COMPLETION = 0x11
SUB_CMD_START_SPEED_FOR_TIME = 0x09
SUB_CMD_START_SPEED_FOR_DEGREES = 0x0B
SUB_CMD_WRITE_DIRECT_MODE_DATA = 0x51
LED_PORT = 0x32
LED_MODE = 0x00
MAX_POWER = 0x64
END_STATE_HOLD = 0x7F
USE_PROFILE = 0x03

MOTOR_TIME_FRAME_LENGTH = 0x0C
MOTOR_ANGLE_FRAME_LENGTH = 0x0E
LED_FRAME_LENGTH = 0x08


class BoostProtocol:
    """
    Move Hub 命令帧编解码器

    帧格式 (小端序):
        ┌──────────┬────────┬────────┬──────┬────────┬────────┬────────────┐
        │ 长度 2B  │ Hub ID │ 消息类型 │ 端口 │ 启动标志 │ 子命令  │ 参数...    │
        │ LL 00    │ 0x00   │ 0x81   │ PP   │ 0x11   │ 0xXX   │ ...        │
        └──────────┴────────┴────────┴──────┴────────┴────────┴────────────┘

    长度字段包含自身，三种命令的帧长固定为 12/14/8 字节。
    """

    @staticmethod
    def build_motor_time(port: int, milliseconds: int, duty_cycle: int = 100) -> bytes:
        """
        构建马达按时长运行命令

        命令格式 (12 字节):
            字节 1-2: 帧长 0x0C 0x00
            字节 3: 消息类型 0x81
            字节 4: 端口
            字节 5: 启动/完成标志 0x11
            字节 6: 子命令 0x09
            字节 7-8: 时长 (小端序, 毫秒 * 1000 后截断为 16 位)
            字节 9: 占空比
            字节 10: 最大功率 0x64
            字节 11: 结束状态 0x7F
            字节 12: 加减速配置 0x03

        :param port: 端口代码
        :param milliseconds: 运行时长 (毫秒)
        :param duty_cycle: 功率百分比 (-100..100)
        :return: 命令字节
        """
        lo_time, hi_time = lsb16(check_number(milliseconds) * 1000)
        return bytes([
            MOTOR_TIME_FRAME_LENGTH, HUB_ID,
            MSG_PORT_OUTPUT,
            port,
            STARTUP_AND_COMPLETION,
            SUB_CMD_START_SPEED_FOR_TIME,
            lo_time, hi_time,
            encode_duty_cycle(duty_cycle),
            MAX_POWER,
            END_STATE_HOLD,
            USE_PROFILE,
        ])

    @staticmethod
    def build_motor_angle(port: int, angle: int, duty_cycle: int = 100) -> bytes:
        """
        构建马达转动角度命令

        命令格式 (14 字节):
            字节 1-2: 帧长 0x0E 0x00
            字节 3: 消息类型 0x81
            字节 4: 端口
            字节 5: 启动/完成标志 0x11
            字节 6: 子命令 0x0B
            字节 7-8: 角度 (小端序, 截断为 16 位)
            字节 9-10: 角度高位 0x00 0x00
            字节 11: 占空比
            字节 12: 最大功率 0x64
            字节 13: 结束状态 0x7F
            字节 14: 加减速配置 0x03

        :param port: 端口代码
        :param angle: 角度
        :param duty_cycle: 功率百分比 (-100..100)
        :return: 命令字节
        """
        lo_angle, hi_angle = lsb16(angle)
        return bytes([
            MOTOR_ANGLE_FRAME_LENGTH, HUB_ID,
            MSG_PORT_OUTPUT,
            port,
            STARTUP_AND_COMPLETION,
            SUB_CMD_START_SPEED_FOR_DEGREES,
            lo_angle, hi_angle,
            0x00, 0x00,
            encode_duty_cycle(duty_cycle),
            MAX_POWER,
            END_STATE_HOLD,
            USE_PROFILE,
        ])

    @staticmethod
    def build_led(color: Union[bool, str, int, HubColor]) -> bytes:
        """
        构建 LED 颜色命令

        命令格式 (8 字节):
            字节 1-2: 帧长 0x08 0x00
            字节 3: 消息类型 0x81
            字节 4: LED 端口 0x32
            字节 5: 启动/完成标志 0x11
            字节 6: 子命令 0x51
            字节 7: 模式 0x00
            字节 8: 颜色序号

        :param color: 颜色 (bool、名称、HubColor 或序号)
        :return: 命令字节
        :raises InvalidColorError: 未知颜色
        """
        return bytes([
            LED_FRAME_LENGTH, HUB_ID,
            MSG_PORT_OUTPUT,
            LED_PORT,
            STARTUP_AND_COMPLETION,
            SUB_CMD_WRITE_DIRECT_MODE_DATA,
            LED_MODE,
            resolve_color(color),
        ])

    @staticmethod
    def encode(command: Command) -> bytes:
        """
        按命令类型编码

        :param command: 命令对象
        :return: 命令字节
        """
        if command.kind is CommandKind.MOTOR_TIME:
            return BoostProtocol.build_motor_time(command.port, command.milliseconds, command.duty_cycle)
        elif command.kind is CommandKind.MOTOR_ANGLE:
            return BoostProtocol.build_motor_angle(command.port, command.angle, command.duty_cycle)
        elif command.kind is CommandKind.LED_COLOR:
            return BoostProtocol.build_led(command.color)
        raise TypeError(f"Unsupported command: {command!r}")

    @staticmethod
    def decode_duty_cycle(value: int) -> int:
        """
        解码占空比字节

        :param value: 单字节编码值
        :return: 功率百分比
        """
        if value > 100:
            return value - 0xFF
        return value

    @staticmethod
    def decode_command(frame: bytes) -> Command:
        """
        解析本库生成的命令帧

        按时长运行命令无法还原毫秒数 (乘 1000 后截断)，
        返回的 milliseconds 字段为帧中的原始 16 位时长。

        :param frame: 命令字节
        :return: 命令对象
        :raises FrameError: 帧格式无法识别
        """
        frame = bytes(frame)
        if len(frame) < 6:
            raise FrameError(frame, "too short")

        length = frame[0] | (frame[1] << 8)
        if length != len(frame):
            raise FrameError(frame, f"length field {length} does not match {len(frame)}")
        if frame[2] != MSG_PORT_OUTPUT or frame[4] != STARTUP_AND_COMPLETION:
            raise FrameError(frame, "not a port output command")

        sub_command = frame[5]
        if length == MOTOR_TIME_FRAME_LENGTH and sub_command == SUB_CMD_START_SPEED_FOR_TIME:
            return MotorTimeCommand(
                port=frame[3],
                milliseconds=frame[6] | (frame[7] << 8),
                duty_cycle=BoostProtocol.decode_duty_cycle(frame[8]),
            )
        elif length == MOTOR_ANGLE_FRAME_LENGTH and sub_command == SUB_CMD_START_SPEED_FOR_DEGREES:
            return MotorAngleCommand(
                port=frame[3],
                angle=frame[6] | (frame[7] << 8),
                duty_cycle=BoostProtocol.decode_duty_cycle(frame[10]),
            )
        elif (
            length == LED_FRAME_LENGTH
            and sub_command == SUB_CMD_WRITE_DIRECT_MODE_DATA
            and frame[3] == LED_PORT
        ):
            if frame[7] > HubColor.WHITE:
                raise FrameError(frame, f"unknown LED color {frame[7]}")
            return LedCommand(color=resolve_color(frame[7]))

        raise FrameError(frame, f"unknown sub command 0x{sub_command:02X}")

    @staticmethod
    def describe(frame: bytes) -> str:
        """
        生成便于日志输出的帧描述

        :param frame: 命令字节
        :return: 描述字符串
        """
        try:
            command = BoostProtocol.decode_command(frame)
        except FrameError:
            return bytes(frame).hex(" ")
        if isinstance(command, LedCommand):
            target = HubColor(command.color).name.lower()
        else:
            try:
                target = HubPort(command.port).name
            except ValueError:
                target = f"0x{command.port:02X}"
        return f"{command.kind.value}({target}) [{bytes(frame).hex(' ')}]"
