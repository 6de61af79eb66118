"""
同步回调接口测试
"""
import asyncio
import threading

import pytest

from fakes import HUB_ADDRESS, FakeScannerFactory, FakeTransportFactory, bleak_advertisement

from pyboost.ble.enums import HubEvent, SessionState
from pyboost.ble.exceptions import BoostError, InvalidColorError, InvalidStateError
from pyboost.client.ble import BoostHubSession
from pyboost.config import HUB_CHARACTERISTIC_UUID
from pyboost.server.ble_compat import BoostHub
from pyboost.server.discovery import HubDiscovery


def make_hub(advertisements=None, **transport_kwargs):
    transports = FakeTransportFactory(**transport_kwargs)
    if advertisements is None:
        advertisements = [bleak_advertisement()]
    scanners = FakeScannerFactory(advertisements)

    def discovery_factory(emitter):
        session = BoostHubSession(transport_factory=transports, emitter=emitter)
        return HubDiscovery(session=session, scanner_factory=scanners)

    return BoostHub(discovery_factory=discovery_factory), transports


class TestBoostHub:
    """后台线程同步接口"""

    def test_start_and_commands(self):
        hub, transports = make_hub()
        found = []
        hub.on(HubEvent.HUB_FOUND, found.append)
        try:
            hub.start(timeout=2.0)
            assert hub.connected
            hub.motor_time("A", 1000, -50)
            hub.motor_angle("B", 90)
            hub.led(False)
        finally:
            hub.stop()

        assert [device.address for device in found] == [HUB_ADDRESS]
        assert transports.last.writes == [
            (HUB_CHARACTERISTIC_UUID,
             bytes([0x0C, 0x00, 0x81, 0x37, 0x11, 0x09, 0x40, 0x42, 0xCD, 0x64, 0x7F, 0x03]),
             True),
            (HUB_CHARACTERISTIC_UUID,
             bytes([0x0E, 0x00, 0x81, 0x38, 0x11, 0x0B, 90, 0x00, 0x00, 0x00, 100, 0x64, 0x7F, 0x03]),
             True),
            (HUB_CHARACTERISTIC_UUID, bytes([0x08, 0x00, 0x81, 0x32, 0x11, 0x51, 0x00, 0x00]), True),
        ]
        assert transports.last.calls[-1] == "disconnect"

    def test_callback_style(self):
        """回调方式: 成功时参数为 None，错误通过回调传递"""
        hub, transports = make_hub()
        results = []
        done = threading.Event()

        def on_done(error):
            results.append(error)
            if len(results) == 2:
                done.set()

        try:
            hub.start(timeout=2.0)
            hub.led("red", callback=on_done)
            hub.led("magenta", callback=on_done)
            assert done.wait(timeout=2.0)
        finally:
            hub.stop()

        assert results[0] is None
        assert isinstance(results[1], InvalidColorError)
        assert len(transports.last.writes) == 1

    def test_callback_receives_unexpected_error(self):
        """非 BoostError 异常同样通过回调传递"""
        hub, _ = make_hub()
        results = []
        done = threading.Event()

        def on_done(error):
            results.append(error)
            done.set()

        async def broken_set_led(color, callback=None):
            raise RuntimeError("adapter reset")

        try:
            hub.start(timeout=2.0)
            hub.session.set_led = broken_set_led
            hub.led("red", callback=on_done)
            assert done.wait(timeout=2.0)
        finally:
            hub.stop()

        assert len(results) == 1
        assert isinstance(results[0], RuntimeError)

    def test_fractional_duration_callback(self):
        """小数时长的命令正常写入并回调"""
        hub, transports = make_hub()
        results = []
        done = threading.Event()

        def on_done(error):
            results.append(error)
            done.set()

        try:
            hub.start(timeout=2.0)
            hub.motor_time("A", 1.5, callback=on_done)
            assert done.wait(timeout=2.0)
        finally:
            hub.stop()

        assert results == [None]
        assert transports.last.writes[0][1][6:8] == bytes([0xDC, 0x05])

    def test_disconnect(self):
        hub, _ = make_hub()
        disconnected = threading.Event()
        hub.on("disconnected", disconnected.set)
        try:
            hub.start(timeout=2.0)
            hub.disconnect()
            assert disconnected.wait(timeout=2.0)
            assert hub.state is SessionState.DISCONNECTED
            with pytest.raises(InvalidStateError):
                hub.led(True)
        finally:
            hub.stop()

    def test_start_timeout(self):
        """没有 Hub 时 start() 超时"""
        hub, transports = make_hub(advertisements=[])
        try:
            with pytest.raises(asyncio.TimeoutError):
                hub.start(timeout=0.05)
        finally:
            hub.stop()
        assert transports.created == []

    def test_commands_before_start(self):
        hub, _ = make_hub()
        assert hub.state is SessionState.IDLE
        with pytest.raises(BoostError):
            hub.motor_time("A", 1000)
