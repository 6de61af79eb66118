"""
Boost Move Hub 设备扫描器
"""
from typing import List

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from ..config import HUB_SERVICE_UUID
from .models import Advertisement, HubDevice
from .utils import normalize_uuid

__all__ = (
    "BoostScanner",
    "is_hub_advertisement",
    "advertisement_from_bleak",
    "hub_device_from_advertisement",
)


def is_hub_advertisement(adv: Advertisement, service_uuid: str = HUB_SERVICE_UUID) -> bool:
    """
    判断广播是否来自 Move Hub

    只比较广播中的第一个服务 UUID

    :param adv: 广播记录
    :param service_uuid: Hub 服务 UUID
    :return: 是否匹配
    """
    if not adv.service_uuids:
        return False
    return normalize_uuid(adv.service_uuids[0]) == normalize_uuid(service_uuid)


def advertisement_from_bleak(device: BLEDevice, adv_data: AdvertisementData) -> Advertisement:
    """将 bleak 的扫描结果转换为广播记录"""
    return Advertisement(
        service_uuids=tuple(adv_data.service_uuids or ()),
        local_name=adv_data.local_name or device.name,
        address=device.address,
        rssi=adv_data.rssi,
    )


def hub_device_from_advertisement(adv: Advertisement) -> HubDevice:
    """由匹配的广播构建设备信息"""
    return HubDevice.from_address(adv.address, name=adv.local_name, rssi=adv.rssi)


class BoostScanner:
    """
    Move Hub 扫描器

    通过广播的主服务 UUID 过滤 Move Hub
    """

    @staticmethod
    async def scan(
        timeout: float = 5.0,
        service_uuid: str = HUB_SERVICE_UUID
    ) -> List[HubDevice]:
        """
        扫描 Move Hub

        :param timeout: 扫描超时时间 (秒)
        :param service_uuid: Hub 服务 UUID
        :return: 发现的 Hub 列表
        """
        devices = await BleakScanner.discover(timeout=timeout, return_adv=True)

        hubs = []
        for device, adv_data in devices.values():
            adv = advertisement_from_bleak(device, adv_data)
            if is_hub_advertisement(adv, service_uuid):
                hubs.append(hub_device_from_advertisement(adv))

        return hubs
