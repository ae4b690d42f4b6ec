from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from pharmalync.models.common import DocumentModel
from pharmalync.utils.datetime_helpers import to_instant


class DeviceRecord(DocumentModel):
    """One push-capable device of a user, stored in the owner's ``fcmDevices`` list."""

    token: str
    device_id: str = ""
    is_active: bool = True
    last_active: datetime = Field(default_factory=lambda: to_instant(None))
    user_agent: str = ""
    registered_at: Optional[datetime] = None

    @field_validator("last_active", mode="before")
    @classmethod
    def _normalize_last_active(cls, v):
        # unparseable or missing timestamps sort as the oldest possible
        return to_instant(v)

    @field_validator("registered_at", mode="before")
    @classmethod
    def _normalize_registered_at(cls, v):
        return to_instant(v, default=None) if v is not None else None
