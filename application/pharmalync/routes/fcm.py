from fastapi import APIRouter, Depends, Query

from pharmalync.core.constants import UserType
from pharmalync.dto.devices import (
    CleanupDevicesResponse,
    DeviceActionResponse,
    DeviceListResponse,
    DeviceOwnerRequest,
    DeviceTokenRequest,
    DeviceView,
    RegisterDeviceRequest,
)
from pharmalync.services.container import get_device_service
from pharmalync.services.device_service import DeviceService

router = APIRouter(prefix="/fcm", tags=["fcm"])


@router.post("/register-device", response_model=DeviceActionResponse)
async def register_device(request: RegisterDeviceRequest, devices: DeviceService = Depends(get_device_service)):
    device = await devices.register(
        request.user_type, request.user_id, request.token,
        user_agent=request.user_agent, device_id=request.device_id,
    )
    return DeviceActionResponse(success=True, message="Device registered", device_id=device.device_id)


@router.post("/unregister-device", response_model=DeviceActionResponse)
async def unregister_device(request: DeviceTokenRequest, devices: DeviceService = Depends(get_device_service)):
    result = await devices.unregister(request.user_type, request.user_id, request.token)
    return DeviceActionResponse(**result)


@router.post("/update-last-active", response_model=DeviceActionResponse)
async def update_last_active(request: DeviceTokenRequest, devices: DeviceService = Depends(get_device_service)):
    touched = await devices.touch(request.user_type, request.user_id, request.token)
    return DeviceActionResponse(success=True, message="Last active updated" if touched else "Device not registered")


@router.post("/cleanup-user-devices", response_model=CleanupDevicesResponse)
async def cleanup_user_devices(request: DeviceOwnerRequest, devices: DeviceService = Depends(get_device_service)):
    removed = await devices.remove_all(request.user_type, request.user_id)
    return CleanupDevicesResponse(success=True, removed=removed, message=f"Removed {removed} device(s)")


@router.get("/devices", response_model=DeviceListResponse)
async def list_devices(user_id: str = Query(..., alias="userId", min_length=1),
                       user_type: UserType = Query(UserType.RETAILER, alias="userType"),
                       devices: DeviceService = Depends(get_device_service)):
    records = await devices.list_devices(user_type, user_id)
    return DeviceListResponse(
        success=True,
        user_id=user_id,
        devices=[
            DeviceView(
                device_id=record.device_id,
                token=record.token,
                is_active=record.is_active,
                last_active=record.last_active,
                user_agent=record.user_agent,
            )
            for record in records
        ],
    )
