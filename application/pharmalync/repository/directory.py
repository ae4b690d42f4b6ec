"""
Retailer / tenant directory.

Read-only lookups of display name, phone and area, cached for
``CACHE_TTL_SECONDS`` (5 minutes by default) through the injected TTL cache.
Device lists are never cached: push targeting always reads them fresh.
"""
from typing import Optional

from pydantic import BaseModel

from pharmalync.connections.cache import TTLCache
from pharmalync.core.constants import UserType
from pharmalync.models.profiles import DEFAULT_AREA
from pharmalync.repository.devices import UserDeviceRepository

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)


class DirectoryEntry(BaseModel):
    user_id: str
    user_type: UserType
    name: str = ""
    phone: str = ""
    area: str = DEFAULT_AREA


class Directory:
    def __init__(self, users: UserDeviceRepository, cache: TTLCache, ttl_seconds: int = 300):
        self.users = users
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _cache_key(user_type: UserType, user_id: str) -> str:
        return f"directory:{UserType(user_type).value}:{user_id}"

    def lookup(self, user_type: UserType, user_id: str) -> Optional[DirectoryEntry]:
        if not user_id:
            return None
        key = self._cache_key(user_type, user_id)
        cached = self.cache.get(key)
        if cached is not None:
            return DirectoryEntry.model_validate(cached)

        profile = self.users.get_profile(user_type, user_id)
        if profile is None:
            logger.info(f"directory_miss | user_type={UserType(user_type).value} user_id={user_id}")
            return None

        entry = DirectoryEntry(
            user_id=user_id,
            user_type=user_type,
            name=profile.name,
            phone=profile.phone,
            area=profile.area or DEFAULT_AREA,
        )
        self.cache.set(key, entry.model_dump(mode="json"), self.ttl_seconds)
        return entry

    def get_retailer(self, retailer_id: str) -> Optional[DirectoryEntry]:
        return self.lookup(UserType.RETAILER, retailer_id)

    def get_tenant(self, tenant_id: str) -> Optional[DirectoryEntry]:
        return self.lookup(UserType.WHOLESALER, tenant_id)

    def get_line_worker(self, line_worker_id: str) -> Optional[DirectoryEntry]:
        return self.lookup(UserType.LINE_WORKER, line_worker_id)

    def invalidate(self, user_type: UserType, user_id: str) -> None:
        self.cache.delete(self._cache_key(user_type, user_id))
