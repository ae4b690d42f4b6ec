from datetime import datetime
from typing import Optional

from pydantic import Field

from pharmalync.core.constants import UserType
from pharmalync.dto.otp import CamelModel


class DeviceOwnerRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    user_type: UserType = Field(UserType.RETAILER, description="retailer, wholesaler or line_worker")


class RegisterDeviceRequest(DeviceOwnerRequest):
    token: str = Field(..., min_length=1, description="FCM registration token")
    user_agent: str = Field("", description="Browser or app user agent")
    device_id: Optional[str] = Field(None, description="Client-side device identifier")


class DeviceTokenRequest(DeviceOwnerRequest):
    token: str = Field(..., min_length=1)


class DeviceView(CamelModel):
    device_id: str
    token: str
    is_active: bool
    last_active: datetime
    user_agent: str


class DeviceActionResponse(CamelModel):
    success: bool
    message: str
    device_id: Optional[str] = None


class CleanupDevicesResponse(CamelModel):
    success: bool
    removed: int
    message: str


class DeviceListResponse(CamelModel):
    success: bool
    user_id: str
    devices: list[DeviceView]
