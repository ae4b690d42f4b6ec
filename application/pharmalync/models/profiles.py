"""
User profile shapes.

Two document layouts coexist in storage:

* legacy: flat ``name``/``phone``/``address`` fields and a single ``fcmToken``
* current: a nested ``profile`` map (``realName``, ``phone``, ``address``) and
  an ``fcmDevices`` list

:func:`resolve_profile` picks the layout once, at the repository boundary, so
services only ever see a :class:`LegacyProfile` or a :class:`CurrentProfile`.
Tenant documents keep their phone under ``contactPhone``.
"""
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from pharmalync.models.devices import DeviceRecord

DEFAULT_AREA = "Unknown Area"


class _ProfileBase(BaseModel):
    user_id: str
    name: str = ""
    phone: str = ""
    area: str = ""


class LegacyProfile(_ProfileBase):
    kind: Literal["legacy"] = "legacy"
    fcm_token: Optional[str] = None
    fcm_token_updated_at: Any = None

    @property
    def devices(self) -> list[DeviceRecord]:
        if not self.fcm_token:
            return []
        return [DeviceRecord(
            token=self.fcm_token,
            device_id="legacy",
            last_active=self.fcm_token_updated_at,
        )]


class CurrentProfile(_ProfileBase):
    kind: Literal["current"] = "current"
    fcm_devices: list[DeviceRecord] = Field(default_factory=list)

    @property
    def devices(self) -> list[DeviceRecord]:
        return self.fcm_devices


UserProfile = Union[LegacyProfile, CurrentProfile]


def _first(*values) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def is_current_layout(data: dict) -> bool:
    return "fcmDevices" in data or isinstance(data.get("profile"), dict)


def resolve_profile(user_id: str, data: dict[str, Any]) -> UserProfile:
    data = data or {}
    nested = data.get("profile") if isinstance(data.get("profile"), dict) else {}
    phone = _first(nested.get("phone"), data.get("phone"), data.get("contactPhone"))
    area = _first(nested.get("address"), data.get("address"), data.get("area"))

    if is_current_layout(data):
        devices = [
            DeviceRecord.model_validate(device)
            for device in data.get("fcmDevices") or []
            if isinstance(device, dict) and device.get("token")
        ]
        return CurrentProfile(
            user_id=user_id,
            name=_first(nested.get("realName"), data.get("name"), data.get("displayName")),
            phone=phone,
            area=area,
            fcm_devices=devices,
        )

    return LegacyProfile(
        user_id=user_id,
        name=_first(data.get("name"), data.get("displayName")),
        phone=phone,
        area=area,
        fcm_token=data.get("fcmToken") or None,
        fcm_token_updated_at=data.get("fcmTokenUpdatedAt") or data.get("updatedAt"),
    )
