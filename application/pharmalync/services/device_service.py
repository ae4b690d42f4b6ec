import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from pharmalync.core.constants import UserType
from pharmalync.core.errors import DeviceOwnerNotFoundError
from pharmalync.models.devices import DeviceRecord
from pharmalync.repository.devices import UserDeviceRepository
from pharmalync.utils.datetime_helpers import utc_now
from pharmalync.utils.formatting import mask_token
from pharmalync.logging.utils import get_app_logger
from pharmalync.config.settings import PharmaLyncConfigs

logger = get_app_logger(__name__)
configs = PharmaLyncConfigs()


def pick_most_recent(devices: list[DeviceRecord]) -> Optional[DeviceRecord]:
    """
    Most recently active device among the active ones.

    Strictly-greater comparison over ``lastActive`` starting from the first
    candidate, so on a tie the earlier device in the list wins.
    """
    candidates = [device for device in devices if device.is_active]
    if not candidates:
        return None
    latest = candidates[0]
    for device in candidates[1:]:
        if device.last_active > latest.last_active:
            latest = device
    return latest


class DeviceService:
    """Push device bookkeeping on user documents."""

    def __init__(self, repository: UserDeviceRepository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock

    async def register(self, user_type: UserType, user_id: str, token: str, user_agent: str = "",
                       device_id: Optional[str] = None) -> DeviceRecord:
        """
        Add a device, or refresh it when the token is already registered.

        Raises:
            DeviceOwnerNotFoundError: no user document for user_id
        """
        now = self.clock()

        def mutate(devices: list[DeviceRecord]):
            for index, device in enumerate(devices):
                if device.token == token:
                    refreshed = device.model_copy(update={
                        "last_active": now,
                        "user_agent": user_agent or device.user_agent,
                        "is_active": True,
                        "device_id": device.device_id or device_id or uuid.uuid4().hex,
                    })
                    devices[index] = refreshed
                    return devices, refreshed
            created = DeviceRecord(
                token=token,
                device_id=device_id or uuid.uuid4().hex,
                is_active=True,
                last_active=now,
                user_agent=user_agent or "",
                registered_at=now,
            )
            devices.append(created)
            return devices, created

        device = self.repository.update_devices(user_type, user_id, mutate)
        logger.info(f"device_registered | user_type={UserType(user_type).value} user_id={user_id} device_id={device.device_id} token={mask_token(token)}")
        return device

    async def unregister(self, user_type: UserType, user_id: str, token: str) -> dict:
        """Remove every record carrying the token. Succeeds when nothing matched."""

        def mutate(devices: list[DeviceRecord]):
            remaining = [device for device in devices if device.token != token]
            removed = len(devices) - len(remaining)
            return (remaining if removed else None), removed

        try:
            removed = self.repository.update_devices(user_type, user_id, mutate)
        except DeviceOwnerNotFoundError:
            removed = 0
        logger.info(f"device_unregistered | user_type={UserType(user_type).value} user_id={user_id} removed={removed}")
        if removed:
            return {"success": True, "message": f"Removed {removed} device(s)"}
        return {"success": True, "message": "Device not registered"}

    async def most_recent_active(self, user_type: UserType, user_id: str) -> Optional[DeviceRecord]:
        profile = self.repository.get_profile(user_type, user_id)
        if profile is None:
            return None
        return pick_most_recent(profile.devices)

    async def touch(self, user_type: UserType, user_id: str, token: str) -> bool:
        """Heartbeat: bump lastActive of a known token. No-op for unknown tokens or users."""
        now = self.clock()

        def mutate(devices: list[DeviceRecord]):
            for index, device in enumerate(devices):
                if device.token == token:
                    devices[index] = device.model_copy(update={"last_active": now})
                    return devices, True
            return None, False

        try:
            return self.repository.update_devices(user_type, user_id, mutate)
        except DeviceOwnerNotFoundError:
            return False

    async def list_devices(self, user_type: UserType, user_id: str) -> list[DeviceRecord]:
        profile = self.repository.get_profile(user_type, user_id)
        if profile is None:
            raise DeviceOwnerNotFoundError(UserType(user_type).value, user_id)
        return list(profile.devices)

    async def remove_all(self, user_type: UserType, user_id: str) -> int:
        def mutate(devices: list[DeviceRecord]):
            return ([] if devices else None), len(devices)

        removed = self.repository.update_devices(user_type, user_id, mutate)
        logger.info(f"devices_cleared | user_type={UserType(user_type).value} user_id={user_id} removed={removed}")
        return removed

    async def deactivate(self, user_type: UserType, user_id: str, token: str) -> bool:
        """Mark a token inactive after the push gateway reported it unregistered."""

        def mutate(devices: list[DeviceRecord]):
            changed = False
            for index, device in enumerate(devices):
                if device.token == token and device.is_active:
                    devices[index] = device.model_copy(update={"is_active": False})
                    changed = True
            return (devices if changed else None), changed

        try:
            changed = self.repository.update_devices(user_type, user_id, mutate)
        except DeviceOwnerNotFoundError:
            return False
        if changed:
            logger.info(f"device_deactivated | user_type={UserType(user_type).value} user_id={user_id} token={mask_token(token)}")
        return changed

    async def prune_inactive(self, user_type: UserType, user_id: str, max_age_days: Optional[int] = None) -> int:
        """Drop devices idle for longer than max_age_days. Never scheduled; callers invoke it."""
        cutoff = self.clock() - timedelta(days=max_age_days or configs.DEVICE_INACTIVE_DAYS)

        def mutate(devices: list[DeviceRecord]):
            kept = [device for device in devices if device.last_active >= cutoff]
            pruned = len(devices) - len(kept)
            return (kept if pruned else None), pruned

        pruned = self.repository.update_devices(user_type, user_id, mutate)
        if pruned:
            logger.info(f"devices_pruned | user_type={UserType(user_type).value} user_id={user_id} pruned={pruned}")
        return pruned
