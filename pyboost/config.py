"""
Boost Hub 连接配置
"""
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = (
    "HUB_SERVICE_UUID",
    "HUB_CHARACTERISTIC_UUID",
    "HubConfig",
)

# Move Hub 广播的主服务 UUID
HUB_SERVICE_UUID = "00001623-1212-efde-1623-785feabcd123"
# 控制特征 UUID (写命令 + 通知)
HUB_CHARACTERISTIC_UUID = "00001624-1212-efde-1623-785feabcd123"


class HubConfig(BaseModel):
    """
    Hub 连接配置

    :ivar service_uuid: 用于识别 Hub 的广播服务 UUID
    :ivar characteristic_uuid: 控制特征 UUID
    :ivar scan_timeout: 单次扫描时间 (秒)
    :ivar operation_timeout: 传输层操作超时 (秒)，None 表示不限时
    :ivar write_with_response: 写入是否要求响应
    """
    model_config = ConfigDict(frozen=True)

    service_uuid: str = HUB_SERVICE_UUID
    characteristic_uuid: str = HUB_CHARACTERISTIC_UUID
    scan_timeout: float = Field(default=5.0, gt=0)
    operation_timeout: Optional[float] = Field(default=None, gt=0)
    write_with_response: bool = True

    @field_validator("service_uuid", "characteristic_uuid")
    @classmethod
    def _canonical_uuid(cls, value: str) -> str:
        # 接受紧凑形式 (000016231212efde...) 与带连字符形式
        return str(uuid.UUID(value.strip()))
