"""
User documents and their push devices.

Users live in per-role collections (see ``USER_COLLECTIONS``). Documents are
resolved into a :class:`LegacyProfile` or :class:`CurrentProfile` here and
nowhere else. Device list writes always store the current ``fcmDevices``
layout, which migrates legacy documents on their first write.
"""
import threading
from typing import Any, Callable, Optional, Protocol

from firebase_admin import firestore

from pharmalync.core.constants import USER_COLLECTIONS, UserType
from pharmalync.core.errors import DeviceOwnerNotFoundError
from pharmalync.models.devices import DeviceRecord
from pharmalync.models.profiles import LegacyProfile, UserProfile, resolve_profile

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)

# returns (devices to write or None to leave untouched, result for the caller)
DeviceMutator = Callable[[list[DeviceRecord]], tuple[Optional[list[DeviceRecord]], Any]]


def _serialize(devices: list[DeviceRecord]) -> list[dict]:
    return [device.to_document() for device in devices]


class UserDeviceRepository(Protocol):
    def get_profile(self, user_type: UserType, user_id: str) -> Optional[UserProfile]: ...

    def update_devices(self, user_type: UserType, user_id: str, mutate: DeviceMutator) -> Any: ...


class FirestoreUserDeviceRepository:
    def __init__(self, db):
        self.db = db

    def _doc_ref(self, user_type: UserType, user_id: str):
        return self.db.collection(USER_COLLECTIONS[UserType(user_type)]).document(user_id)

    def get_profile(self, user_type: UserType, user_id: str) -> Optional[UserProfile]:
        snapshot = self._doc_ref(user_type, user_id).get()
        if not snapshot.exists:
            return None
        return resolve_profile(user_id, snapshot.to_dict() or {})

    def update_devices(self, user_type: UserType, user_id: str, mutate: DeviceMutator) -> Any:
        doc_ref = self._doc_ref(user_type, user_id)

        @firestore.transactional
        def _run(transaction):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise DeviceOwnerNotFoundError(UserType(user_type).value, user_id)
            profile = resolve_profile(user_id, snapshot.to_dict() or {})
            devices, result = mutate(list(profile.devices))
            if devices is not None:
                update = {"fcmDevices": _serialize(devices)}
                if isinstance(profile, LegacyProfile):
                    update["fcmToken"] = firestore.DELETE_FIELD
                    logger.info(f"legacy_devices_migrated | user_type={UserType(user_type).value} user_id={user_id}")
                transaction.update(doc_ref, update)
            return result

        return _run(self.db.transaction())


class InMemoryUserDeviceRepository:
    def __init__(self):
        self._documents: dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def seed(self, user_type: UserType, user_id: str, data: dict) -> None:
        with self._lock:
            self._documents[(USER_COLLECTIONS[UserType(user_type)], user_id)] = dict(data)

    def document(self, user_type: UserType, user_id: str) -> Optional[dict]:
        with self._lock:
            data = self._documents.get((USER_COLLECTIONS[UserType(user_type)], user_id))
            return dict(data) if data is not None else None

    def get_profile(self, user_type: UserType, user_id: str) -> Optional[UserProfile]:
        data = self.document(user_type, user_id)
        if data is None:
            return None
        return resolve_profile(user_id, data)

    def update_devices(self, user_type: UserType, user_id: str, mutate: DeviceMutator) -> Any:
        key = (USER_COLLECTIONS[UserType(user_type)], user_id)
        with self._lock:
            data = self._documents.get(key)
            if data is None:
                raise DeviceOwnerNotFoundError(UserType(user_type).value, user_id)
            profile = resolve_profile(user_id, data)
            devices, result = mutate([device.model_copy() for device in profile.devices])
            if devices is not None:
                data["fcmDevices"] = _serialize(devices)
                data.pop("fcmToken", None)
            return result
