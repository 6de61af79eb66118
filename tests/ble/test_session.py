"""
Move Hub 会话状态机测试
"""
import asyncio

import pytest

from fakes import HUB_ADDRESS, EventRecorder, FakeTransportFactory

from pyboost.ble.enums import HubEvent, SessionState
from pyboost.ble.exceptions import (
    BoostError,
    InvalidDutyCycleError,
    InvalidNumberError,
    InvalidPortError,
    InvalidStateError,
    ServiceDiscoveryError,
    SubscribeError,
    TransportConnectError,
    WriteError,
)
from pyboost.ble.models import HubDevice, LedCommand
from pyboost.client.ble import BoostHubSession
from pyboost.config import HUB_CHARACTERISTIC_UUID, HubConfig

SCENARIO_FRAME = bytes([0x0C, 0x00, 0x81, 0x37, 0x11, 0x09, 0x40, 0x42, 0xCD, 0x64, 0x7F, 0x03])


def make_session(config=None, **transport_kwargs):
    factory = FakeTransportFactory(**transport_kwargs)
    session = BoostHubSession(
        HubDevice.from_address(HUB_ADDRESS),
        config=config,
        transport_factory=factory
    )
    recorder = EventRecorder(session.emitter)
    return session, factory, recorder


async def wait_for_state(session, state, attempts=100):
    for _ in range(attempts):
        if session.state is state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"session stuck in {session.state}")


class TestConnect:
    """连接流程测试"""

    def test_connect_reaches_ready(self):
        """连接 -> 枚举 -> 订阅 -> 就绪"""
        async def run():
            session, factory, recorder = make_session()
            assert session.state is SessionState.IDLE
            assert await session.connect() is True
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        transport = factory.last
        assert session.state is SessionState.READY
        assert session.ready
        assert session.write_channel == HUB_CHARACTERISTIC_UUID
        assert transport.calls == ["connect", "discover", "start_notify"]
        assert transport.notify_characteristic == HUB_CHARACTERISTIC_UUID
        assert recorder.names() == [HubEvent.CONNECTED]

    def test_connect_with_device_argument(self):
        """connect() 指定设备"""
        async def run():
            factory = FakeTransportFactory()
            session = BoostHubSession(transport_factory=factory)
            await session.connect("AA:BB:CC:DD:EE:FF")
            return session, factory

        session, factory = asyncio.run(run())
        assert factory.last.device == "AA:BB:CC:DD:EE:FF"
        assert session.device == "AA:BB:CC:DD:EE:FF"

    def test_connect_without_device(self):
        async def run():
            await BoostHubSession(transport_factory=FakeTransportFactory()).connect()

        with pytest.raises(ValueError):
            asyncio.run(run())

    def test_compact_characteristic_uuid(self):
        """特征 UUID 比较不受格式影响"""
        async def run():
            session, factory, _ = make_session(characteristics=("00001624-1212-EFDE-1623-785FEABCD123",))
            await session.connect()
            return session

        session = asyncio.run(run())
        assert session.ready
        assert session.write_channel == "00001624-1212-EFDE-1623-785FEABCD123"

    def test_transport_error(self):
        """连接失败: 不抛出，进入断开状态并上报错误"""
        async def run():
            session, factory, recorder = make_session(fail_connect=OSError("adapter off"))
            result = await session.connect()
            return session, recorder, result

        session, recorder, result = asyncio.run(run())
        assert result is False
        assert session.state is SessionState.DISCONNECTED
        assert session.write_channel is None
        errors = recorder.of(HubEvent.ERROR)
        assert len(errors) == 1
        assert isinstance(errors[0][0], TransportConnectError)
        assert "adapter off" in str(errors[0][0])
        assert HubEvent.CONNECTED not in recorder.names()

    def test_connect_timeout(self):
        """传输层挂起时由调用方超时兜底"""
        async def run():
            session, factory, recorder = make_session(
                config=HubConfig(operation_timeout=0.01),
                connect_gate=asyncio.Event()
            )
            result = await session.connect()
            return session, recorder, result

        session, recorder, result = asyncio.run(run())
        assert result is False
        assert session.state is SessionState.DISCONNECTED
        assert isinstance(recorder.of(HubEvent.ERROR)[0][0], TransportConnectError)

    def test_connect_twice(self):
        """就绪后再次连接报错"""
        async def run():
            session, _, _ = make_session()
            await session.connect()
            await session.connect()

        with pytest.raises(InvalidStateError):
            asyncio.run(run())

    def test_reconnect_after_disconnect(self):
        """断开后可重新连接，使用新的传输"""
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            await session.disconnect()
            await session.connect()
            return session, factory

        session, factory = asyncio.run(run())
        assert session.ready
        assert len(factory.created) == 2


class TestCharacteristicDiscovery:
    """特征枚举与订阅测试"""

    def test_discovery_error(self):
        """枚举失败: 记录并上报，保持已连接但不可写"""
        async def run():
            session, _, recorder = make_session(fail_discover=RuntimeError("gatt"))
            result = await session.connect()
            return session, recorder, result

        session, recorder, result = asyncio.run(run())
        assert result is False
        assert session.state is SessionState.CONNECTED
        assert session.write_channel is None
        assert isinstance(recorder.of(HubEvent.ERROR)[0][0], ServiceDiscoveryError)

    def test_characteristic_missing(self):
        """没有控制特征: 保持已连接，无写入通道"""
        async def run():
            session, factory, recorder = make_session(characteristics=("00002a00-0000-1000-8000-00805f9b34fb",))
            await session.connect()
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        assert session.state is SessionState.CONNECTED
        assert session.write_channel is None
        assert "start_notify" not in factory.last.calls
        assert recorder.events == []

    def test_subscribe_error(self):
        """订阅失败: 上报错误，不重试，会话不可写"""
        async def run():
            session, factory, recorder = make_session(fail_subscribe=RuntimeError("notify"))
            await session.connect()
            with pytest.raises(InvalidStateError):
                await session.set_led("red")
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        assert session.state is SessionState.CONNECTED
        assert session.write_channel is None
        assert factory.last.calls.count("start_notify") == 1
        errors = recorder.of(HubEvent.ERROR)
        assert len(errors) == 1
        assert isinstance(errors[0][0], SubscribeError)
        assert HubEvent.CONNECTED not in recorder.names()


class TestWrite:
    """命令写入测试"""

    def test_motor_time_scenario(self):
        """就绪时 run_motor_for_duration("A", 1000, -50)"""
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            await session.run_motor_for_duration("A", 1000, -50)
            return factory

        factory = asyncio.run(run())
        assert factory.last.writes == [(HUB_CHARACTERISTIC_UUID, SCENARIO_FRAME, True)]

    def test_motor_angle_and_led(self):
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            await session.run_motor_to_angle("B", 90)
            await session.set_led(True)
            return factory

        factory = asyncio.run(run())
        frames = [frame for _, frame, _ in factory.last.writes]
        assert frames == [
            bytes([0x0E, 0x00, 0x81, 0x38, 0x11, 0x0B, 90, 0x00, 0x00, 0x00, 100, 0x64, 0x7F, 0x03]),
            bytes([0x08, 0x00, 0x81, 0x32, 0x11, 0x51, 0x00, 10]),
        ]

    def test_fractional_duration_and_angle(self):
        """小数时长/角度向零截断后写入"""
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            await session.run_motor_for_duration("A", 1.5)
            await session.run_motor_to_angle("A", 90.7)
            return factory

        factory = asyncio.run(run())
        frames = [frame for _, frame, _ in factory.last.writes]
        # 1.5 * 1000 = 1500 = 0x05DC
        assert frames[0][6:8] == bytes([0xDC, 0x05])
        assert frames[1][6:8] == bytes([90, 0x00])

    def test_write_without_response(self):
        async def run():
            session, factory, _ = make_session(config=HubConfig(write_with_response=False))
            await session.connect()
            await session.write(LedCommand(color=3))
            return factory

        factory = asyncio.run(run())
        assert factory.last.writes[0][2] is False

    def test_write_before_connect(self):
        """未连接时写入报错"""
        async def run():
            session, _, _ = make_session()
            await session.set_led("red")

        with pytest.raises(InvalidStateError) as exc_info:
            asyncio.run(run())
        assert exc_info.value.state is SessionState.IDLE

    def test_write_while_connecting(self):
        """连接中调用马达命令: InvalidStateError 且不产生写入"""
        async def run():
            gate = asyncio.Event()
            session, factory, _ = make_session(connect_gate=gate)
            task = asyncio.create_task(session.connect())
            await wait_for_state(session, SessionState.CONNECTING)

            with pytest.raises(InvalidStateError) as exc_info:
                await session.run_motor_for_duration("A", 1000, -50)
            assert exc_info.value.state is SessionState.CONNECTING
            assert "write" not in factory.last.calls

            gate.set()
            await task
            return session, factory

        session, factory = asyncio.run(run())
        assert session.ready
        assert factory.last.writes == []

    def test_invalid_arguments(self):
        """参数校验先于写入"""
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            with pytest.raises(InvalidPortError):
                await session.run_motor_for_duration("E", 1000)
            with pytest.raises(InvalidDutyCycleError):
                await session.run_motor_to_angle("A", 90, 150)
            with pytest.raises(InvalidNumberError):
                await session.run_motor_for_duration("A", "1000")
            with pytest.raises(InvalidNumberError):
                await session.run_motor_to_angle("A", float("nan"))
            return factory

        factory = asyncio.run(run())
        assert factory.last.writes == []

    def test_write_error_raises(self):
        """写入失败且无回调时抛出 WriteError，不自动重试"""
        async def run():
            session, factory, recorder = make_session(fail_write=RuntimeError("gatt write"))
            await session.connect()
            with pytest.raises(WriteError) as exc_info:
                await session.set_led("blue")
            assert exc_info.value.frame[-1] == 3
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        assert factory.last.calls.count("write") == 1
        assert session.ready
        assert recorder.of(HubEvent.ERROR) == []

    def test_write_callback(self):
        """提供回调时结果只通过回调传递"""
        results = []

        async def run():
            session, factory, _ = make_session()
            await session.connect()
            await session.set_led("green", callback=results.append)
            factory.last.fail_write = RuntimeError("gatt write")
            await session.set_led("green", callback=results.append)

        asyncio.run(run())
        assert results[0] is None
        assert isinstance(results[1], WriteError)

    def test_writes_are_serialized(self):
        """同一时间只有一个写入在进行"""
        async def run():
            gate = asyncio.Event()
            session, factory, _ = make_session(write_gate=gate)
            await session.connect()
            tasks = [
                asyncio.create_task(session.run_motor_for_duration("A", 100)),
                asyncio.create_task(session.run_motor_for_duration("B", 100)),
                asyncio.create_task(session.set_led("red")),
            ]
            for _ in range(5):
                await asyncio.sleep(0)
            gate.set()
            await asyncio.gather(*tasks)
            return factory

        factory = asyncio.run(run())
        assert factory.last.max_in_flight == 1
        assert len(factory.last.writes) == 3

    def test_write_timeout(self):
        """写入挂起时按配置超时"""
        async def run():
            session, _, _ = make_session(
                config=HubConfig(operation_timeout=0.01),
                write_gate=asyncio.Event()
            )
            await session.connect()
            await session.set_led("red")

        with pytest.raises(WriteError):
            asyncio.run(run())


class TestDisconnect:
    """断开测试"""

    def test_disconnect(self):
        """断开后状态与通知"""
        async def run():
            session, factory, recorder = make_session()
            await session.connect()
            await session.disconnect()
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        assert session.state is SessionState.DISCONNECTED
        assert session.write_channel is None
        assert factory.last.calls[-1] == "disconnect"
        # 传输层的断开回调不会重复通知
        assert recorder.names() == [HubEvent.CONNECTED, HubEvent.DISCONNECTED]

    def test_disconnect_when_idle(self):
        """未连接时为空操作"""
        async def run():
            session, factory, recorder = make_session()
            await session.disconnect()
            return session, factory, recorder

        session, factory, recorder = asyncio.run(run())
        assert session.state is SessionState.IDLE
        assert factory.created == []
        assert recorder.events == []

    def test_disconnect_twice(self):
        async def run():
            session, factory, recorder = make_session()
            await session.connect()
            await session.disconnect()
            await session.disconnect()
            return factory, recorder

        factory, recorder = asyncio.run(run())
        assert factory.last.calls.count("disconnect") == 1
        assert recorder.of(HubEvent.DISCONNECTED) == [()]

    def test_disconnect_without_characteristic(self):
        """已连接但无写入通道时也可断开"""
        async def run():
            session, _, recorder = make_session(characteristics=())
            await session.connect()
            await session.disconnect()
            return session, recorder

        session, recorder = asyncio.run(run())
        assert session.state is SessionState.DISCONNECTED
        assert recorder.names() == [HubEvent.DISCONNECTED]

    def test_write_after_disconnect(self):
        async def run():
            session, _, _ = make_session()
            await session.connect()
            await session.disconnect()
            await session.set_led("red")

        with pytest.raises(InvalidStateError):
            asyncio.run(run())

    def test_link_lost(self):
        """链路意外断开"""
        async def run():
            session, factory, recorder = make_session()
            await session.connect()
            factory.last.drop_link()
            return session, recorder

        session, recorder = asyncio.run(run())
        assert session.state is SessionState.DISCONNECTED
        assert session.write_channel is None
        assert recorder.names() == [HubEvent.CONNECTED, HubEvent.DISCONNECTED]

    def test_outstanding_write_after_disconnect(self):
        """断开后完成的写入仍回报给调用方，但不改变会话状态"""
        results = []

        async def run():
            gate = asyncio.Event()
            session, factory, recorder = make_session(write_gate=gate)
            await session.connect()
            task = asyncio.create_task(session.set_led("red", callback=results.append))
            for _ in range(3):
                await asyncio.sleep(0)
            await session.disconnect()
            factory.last.fail_write = RuntimeError("link gone")
            gate.set()
            await task
            return session, recorder

        session, recorder = asyncio.run(run())
        assert isinstance(results[0], WriteError)
        assert session.state is SessionState.DISCONNECTED
        assert recorder.of(HubEvent.ERROR) == []


class TestNotifications:
    """通知透传测试"""

    def test_data_received(self):
        """原始数据原样转发"""
        async def run():
            session, factory, recorder = make_session()
            await session.connect()
            factory.last.notify(bytearray(b"\x0f\x00\x04\x01\x01\x27\x00"))
            data = await session.recv_data(timeout=0.1)
            return data, recorder

        data, recorder = asyncio.run(run())
        assert data == b"\x0f\x00\x04\x01\x01\x27\x00"
        assert recorder.of(HubEvent.DATA_RECEIVED) == [(b"\x0f\x00\x04\x01\x01\x27\x00",)]

    def test_recv_data_timeout(self):
        async def run():
            session, _, _ = make_session()
            await session.connect()
            return await session.recv_data(timeout=0.01)

        assert asyncio.run(run()) is None

    def test_notification_after_disconnect(self):
        """断开后的通知被丢弃"""
        async def run():
            session, factory, recorder = make_session()
            await session.connect()
            handler = factory.last.notify_handler
            await session.disconnect()
            handler(b"\x05\x00\x01")
            return session, recorder

        session, recorder = asyncio.run(run())
        assert recorder.of(HubEvent.DATA_RECEIVED) == []

    def test_data_generator(self):
        """生成器在会话断开后结束"""
        async def run():
            session, factory, _ = make_session()
            await session.connect()
            factory.last.notify(b"\x01")
            factory.last.notify(b"\x02")
            received = []
            async for data in session.data_generator(poll_interval=0.01):
                received.append(data)
                if len(received) == 2:
                    await session.disconnect()
            return received

        assert asyncio.run(run()) == [b"\x01", b"\x02"]


class TestContextManager:
    """异步上下文管理测试"""

    def test_async_with(self):
        async def run():
            session, factory, _ = make_session()
            async with session as hub:
                assert hub.ready
                await hub.set_led("cyan")
            return session, factory

        session, factory = asyncio.run(run())
        assert session.state is SessionState.DISCONNECTED
        assert len(factory.last.writes) == 1

    def test_async_with_connect_error(self):
        async def run():
            session, _, _ = make_session(fail_connect=OSError("boom"))
            async with session:
                pass

        with pytest.raises(TransportConnectError):
            asyncio.run(run())

    def test_async_with_missing_characteristic(self):
        async def run():
            session, _, _ = make_session(characteristics=())
            async with session:
                pass

        with pytest.raises(BoostError):
            asyncio.run(run())
